"""Gating configuration for step analysis sessions.

A session records anything only when its config is enabled and the
condition predicate returns True. Both, together with the writer and the
measurement collaborators, are read once when the session starts.

The process-wide DEFAULT_CONFIG is what ``start()`` uses when no config is
passed. It starts enabled when STEP_ANALYSIS=1 is set in the environment.
"""

import argparse
import os
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from beartype import beartype

from stepperf._memory import MemStats, read_mem_stats

ENV_VAR = "STEP_ANALYSIS"
FLAG_NAME = "--stepAnalysis"
FLAG_HELP = "display memory and timing of different steps of the program"

_TRUTHY = {"1", "true", "yes", "on"}


@runtime_checkable
class Writer(Protocol):
    def write(self, s: str, /) -> object: ...


def _always() -> bool:
    return True


@beartype
@dataclass
class StepAnalysisConfig:
    """Settings consulted by ``start()``.

    Attributes:
        enabled: Master switch (default: False)
        condition: Zero-argument predicate evaluated once per session start
        writer: Text or byte sink; None means sys.stdout at session start
        clock: Monotonic clock returning integer nanoseconds
        mem_stats: Allocation counter reader
    """

    enabled: bool = False
    condition: Callable[[], bool] = field(default=_always)
    writer: Writer | None = None
    clock: Callable[[], int] = field(default=time.perf_counter_ns)
    mem_stats: Callable[[], MemStats] = field(default=read_mem_stats)

    @classmethod
    def from_env(cls) -> "StepAnalysisConfig":
        return cls(enabled=os.environ.get(ENV_VAR, "").strip().lower() in _TRUTHY)


DEFAULT_CONFIG = StepAnalysisConfig.from_env()


@beartype
def set_enabled(enabled: bool) -> None:
    DEFAULT_CONFIG.enabled = enabled


@beartype
def set_condition(condition: Callable[[], bool]) -> None:
    """Replace the gate evaluated at every session start.

    Example:
        set_condition(lambda: random.randrange(100) == 42)
    """
    DEFAULT_CONFIG.condition = condition


@beartype
def set_writer(writer: Writer | None) -> None:
    DEFAULT_CONFIG.writer = writer


class _EnableAction(argparse.Action):
    """Boolean switch that also flips ``config.enabled`` when given."""

    def __init__(self, option_strings, dest, config: StepAnalysisConfig, **kwargs):
        self._config = config
        super().__init__(option_strings, dest, nargs=0, default=False, **kwargs)

    def __call__(self, parser, namespace, values, option_string=None):
        setattr(namespace, self.dest, True)
        self._config.enabled = True


@beartype
def add_step_analysis_flag(
    parser: argparse.ArgumentParser,
    config: StepAnalysisConfig | None = None,
) -> argparse.Action:
    """Bind ``--stepAnalysis`` on a parser.

    Parsing the switch enables ``config`` (DEFAULT_CONFIG when omitted).
    The parsed namespace also carries ``stepAnalysis`` as a plain bool.

    Returns:
        The registered argparse action.
    """
    return parser.add_argument(
        FLAG_NAME,
        action=_EnableAction,
        config=config if config is not None else DEFAULT_CONFIG,
        help=FLAG_HELP,
    )
