"""Step timers: wall-clock and allocation deltas between named checkpoints.

Design by Contract:
- Segment durations MUST be non-negative (crash if the clock went backwards)
- Net allocation counters MUST be non-negative (deltas are clamped at zero)
- A gated-off session is an InactiveTimer, never None, so host code calls
  step()/stop() unconditionally

Example:
    timer = start("build site")
    prep_templates()
    timer.step("initialize & template prep")
    create_pages()
    timer.stop("import pages")
"""

import io
import sys
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from beartype import beartype
from loguru import logger

from stepperf._config import DEFAULT_CONFIG, StepAnalysisConfig, Writer
from stepperf._memory import MemStats

_NS_PER_US = 1_000
_NS_PER_MS = 1_000_000
_NS_PER_S = 1_000_000_000
_NS_PER_MIN = 60 * _NS_PER_S
_NS_PER_HOUR = 60 * _NS_PER_MIN

HEADER_COLUMNS = ("during", "total", "memBytes", "memAllocs")
_LINE_FORMAT = "{:>9}\t{:>9}\t{:>9}\t{:>9}\t{}\n"


def _is_binary(writer: Writer) -> bool:
    """True for byte sinks (BytesIO, files opened with "b")."""
    if isinstance(writer, io.TextIOBase):
        return False
    if isinstance(writer, (io.BufferedIOBase, io.RawIOBase)):
        return True
    mode = getattr(writer, "mode", "")
    return isinstance(mode, str) and "b" in mode


def _fraction(value: int, unit: int) -> str:
    whole, frac = divmod(value, unit)
    if not frac:
        return str(whole)
    digits = len(str(unit)) - 1
    return f"{whole}.{frac:0{digits}d}".rstrip("0")


@beartype
def format_duration(ns: int) -> str:
    """Render nanoseconds as e.g. ``850ns``, ``1.5µs``, ``12.25ms``, ``1m0s``.

    Units step from ns to µs to ms below one second. From one second up the
    value is split into hours, minutes and fractional seconds, leading zero
    units omitted. Zero renders as ``0s``.
    """
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    ns = abs(ns)

    if ns < _NS_PER_US:
        return f"{sign}{ns}ns"
    if ns < _NS_PER_MS:
        return f"{sign}{_fraction(ns, _NS_PER_US)}µs"
    if ns < _NS_PER_S:
        return f"{sign}{_fraction(ns, _NS_PER_MS)}ms"

    hours, rest = divmod(ns, _NS_PER_HOUR)
    minutes, rest = divmod(rest, _NS_PER_MIN)
    seconds = f"{_fraction(rest, _NS_PER_S)}s"
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}"
    if minutes:
        return f"{sign}{minutes}m{seconds}"
    return f"{sign}{seconds}"


@dataclass(frozen=True)
class StepResult:
    """One report row.

    Attributes:
        total: Nanoseconds since the session started
        during: Accumulated segment nanoseconds since the last reset
        mem_allocs: Net allocated blocks since the last reset
        mem_bytes: Net allocated bytes since the last reset
    """

    total: int
    during: int
    mem_allocs: int
    mem_bytes: int


class Timer:
    """An active measurement session.

    Created by ``start()``. Each ``step()`` closes the current segment,
    writes one line and opens the next; ``stop()`` closes the last segment
    and ends the session.

    The ``during`` column is the cost of the segment that just ended; the
    ``total`` column is the running time since ``start()``.
    """

    def __init__(
        self,
        title: str,
        writer: Writer,
        clock: Callable[[], int],
        mem_stats: Callable[[], MemStats],
    ) -> None:
        self.title = title
        self._writer = writer
        self._binary = _is_binary(writer)
        self._clock = clock
        self._mem_stats = mem_stats

        self._initial: int = clock()
        self._start: int = 0
        self._duration: int = 0
        self._running: bool = False
        self._start_allocs: int = 0
        self._start_bytes: int = 0
        self._net_allocs: int = 0
        self._net_bytes: int = 0
        self._finished: bool = False

    def __bool__(self) -> bool:
        return True

    def __repr__(self) -> str:
        state = "finished" if self._finished else "running" if self._running else "idle"
        return f"Timer({self.title!r}, {state})"

    def __enter__(self) -> "Timer":
        return self

    def __exit__(self, *args: Any) -> None:
        if not self._finished:
            self.stop(self.title)

    @property
    def running(self) -> bool:
        return self._running

    @property
    def finished(self) -> bool:
        return self._finished

    def _start_timer(self) -> None:
        if self._running:
            return
        stats = self._mem_stats()
        self._start_allocs = stats.allocs
        self._start_bytes = stats.total_bytes
        self._start = self._clock()
        self._running = True

    def _stop_timer(self) -> None:
        if not self._running:
            return
        elapsed = self._clock() - self._start
        assert elapsed >= 0, (
            f"Segment duration cannot be negative: {elapsed}ns. "
            f"Clock went backwards or timing bug."
        )
        self._duration += elapsed

        stats = self._mem_stats()
        self._net_allocs += max(0, stats.allocs - self._start_allocs)
        self._net_bytes += max(0, stats.total_bytes - self._start_bytes)
        self._running = False

    def _reset_timer(self) -> None:
        # A running segment keeps running from a fresh baseline.
        if self._running:
            stats = self._mem_stats()
            self._start_allocs = stats.allocs
            self._start_bytes = stats.total_bytes
            self._start = self._clock()
        self._duration = 0
        self._net_allocs = 0
        self._net_bytes = 0

    def results(self) -> StepResult:
        return StepResult(
            total=self._clock() - self._initial,
            during=self._duration,
            mem_allocs=self._net_allocs,
            mem_bytes=self._net_bytes,
        )

    def _emit(self, line: str) -> None:
        self._writer.write(line.encode() if self._binary else line)

    def _write_header(self, title: str) -> None:
        self._emit(_LINE_FORMAT.format(*HEADER_COLUMNS, title))

    def _write(self, label: str) -> None:
        r = self.results()
        self._emit(
            _LINE_FORMAT.format(
                format_duration(r.during),
                format_duration(r.total),
                r.mem_bytes,
                r.mem_allocs,
                label,
            )
        )

    @beartype
    def step(self, label: str) -> None:
        """Close the current segment, report it and open the next one.

        Args:
            label: Name of the work done since the previous checkpoint
        """
        if self._finished:
            logger.warning(f"step({label!r}) ignored: session {self.title!r} already stopped")
            return
        self._stop_timer()
        self._write(label)
        self._reset_timer()
        self._start_timer()

    @beartype
    def stop(self, label: str) -> None:
        """Close the final segment and report it. Later calls are ignored.

        Args:
            label: Name of the work done since the previous checkpoint
        """
        if self._finished:
            logger.warning(f"stop({label!r}) ignored: session {self.title!r} already stopped")
            return
        self._stop_timer()
        self._write(label)
        self._finished = True
        logger.debug(f"Step analysis session {self.title!r} stopped")


class InactiveTimer:
    """Session handle returned when step analysis is gated off.

    Every operation is a no-op, so callers never branch on activation.
    Falsy, for callers that want to skip expensive label construction.
    """

    title = ""
    running = False
    finished = True

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "InactiveTimer()"

    def __enter__(self) -> "InactiveTimer":
        return self

    def __exit__(self, *args: Any) -> None:
        return None

    @beartype
    def step(self, label: str) -> None:
        return None

    @beartype
    def stop(self, label: str) -> None:
        return None


INACTIVE = InactiveTimer()

Session = Timer | InactiveTimer


@beartype
def start(title: str, config: StepAnalysisConfig | None = None) -> Session:
    """Begin a step analysis session.

    Reads ``config`` (DEFAULT_CONFIG when omitted) once: later changes to it
    do not affect the returned session.

    Args:
        title: Session label printed in the header line
        config: Gating and sink settings

    Returns:
        A running Timer, or INACTIVE when disabled or filtered out by the
        condition predicate.
    """
    cfg = config if config is not None else DEFAULT_CONFIG

    if not cfg.enabled:
        logger.debug(f"Step analysis session {title!r} skipped: disabled")
        return INACTIVE
    if not cfg.condition():
        logger.debug(f"Step analysis session {title!r} skipped by condition")
        return INACTIVE

    writer = cfg.writer if cfg.writer is not None else sys.stdout
    timer = Timer(title, writer=writer, clock=cfg.clock, mem_stats=cfg.mem_stats)
    timer._write_header(title)
    timer._reset_timer()
    timer._start_timer()
    logger.debug(f"Step analysis session {title!r} started")
    return timer
