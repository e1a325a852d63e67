"""stepperf: Step-by-step timing and allocation analysis.

Provides:
- start: Begin a session (returns a Timer, or INACTIVE when gated off)
- Timer: Active session with step()/stop() checkpoints
- StepAnalysisConfig: Enable flag, condition predicate and report sink
- add_step_analysis_flag: Bind ``--stepAnalysis`` on an argparse parser

Usage:
    import stepperf

    stepperf.set_enabled(True)

    timer = stepperf.start("build site")
    prep_templates()
    timer.step("initialize & template prep")
    create_pages()
    timer.stop("import pages")

Output (tab separated):
       during	    total	 memBytes	memAllocs	build site
       12.5ms	  12.51ms	   409600	     1835	initialize & template prep
      1.2034s	  1.2159s	  8388608	    40211	import pages
"""

from stepperf._config import (
    DEFAULT_CONFIG,
    StepAnalysisConfig,
    add_step_analysis_flag,
    set_condition,
    set_enabled,
    set_writer,
)
from stepperf._core import (
    INACTIVE,
    InactiveTimer,
    Session,
    StepResult,
    Timer,
    format_duration,
    start,
)
from stepperf._memory import MemStats, read_mem_stats

__all__ = [
    "DEFAULT_CONFIG",
    "INACTIVE",
    "InactiveTimer",
    "MemStats",
    "Session",
    "StepAnalysisConfig",
    "StepResult",
    "Timer",
    "add_step_analysis_flag",
    "format_duration",
    "read_mem_stats",
    "set_condition",
    "set_enabled",
    "set_writer",
    "start",
]

__version__ = "0.1.0"
