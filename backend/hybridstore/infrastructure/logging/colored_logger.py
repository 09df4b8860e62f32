"""Colored stage logger for shard, registry and reconciler flows.

Each stage has a fixed color and icon so that one save (shard write,
registry upsert, commit) reads as a single trail in the console:

    SHARD green, REGISTRY blue, RECONCILE yellow, COMMIT green,
    ROLLBACK magenta, SWEEP cyan, ERROR red, COMPLETE white.
"""

import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator, NamedTuple

_RESET = "\033[0m"
_BOLD = "\033[1m"
_DIM = "\033[2m"
_RED = "\033[91m"
_GREEN = "\033[92m"
_YELLOW = "\033[93m"
_BLUE = "\033[94m"
_MAGENTA = "\033[95m"
_CYAN = "\033[96m"
_WHITE = "\033[97m"
_GRAY = "\033[90m"


class Stage(NamedTuple):
    label: str
    color: str
    icon: str


class PipelineStage:
    """Stages of a persistence flow."""

    SHARD = Stage("SHARD", _GREEN, "💾")
    REGISTRY = Stage("REGISTRY", _BLUE, "🗂️")
    RECONCILE = Stage("RECONCILE", _YELLOW, "🔄")
    COMMIT = Stage("COMMIT", _GREEN, "✅")
    ROLLBACK = Stage("ROLLBACK", _MAGENTA, "↩️")
    SWEEP = Stage("SWEEP", _CYAN, "🧹")
    ERROR = Stage("ERROR", _RED, "❌")
    COMPLETE = Stage("COMPLETE", _WHITE, "⚙️")


def _context(values: dict[str, Any], tint: str = _GRAY) -> str:
    if not values:
        return ""
    return f" {tint}({' | '.join(f'{k}={v}' for k, v in values.items())}){_RESET}"


def _failure(error: Exception | None) -> str:
    if error is None:
        return ""
    return f" {_DIM}→ {type(error).__name__}: {error}{_RESET}"


class PipelineLogger:
    """Color-coded logger for multi-step persistence operations.

    Usage:
        log = PipelineLogger("DualWriteCoordinator")
        with log.timed_step(PipelineStage.SHARD, "Writing payload", record_id=rid):
            pointer = await shard.write(...)
    """

    def __init__(self, component_name: str):
        self._logger = logging.getLogger(component_name)

    @property
    def name(self) -> str:
        return self._logger.name

    def _tag(self, stage: Stage, tint: str | None = None, bold: bool = False) -> str:
        color = tint or stage.color
        return f"{color}{_BOLD if bold else ''}{stage.icon} [{stage.label}]{_RESET} "

    def step_start(self, stage: Stage, message: str, **context: Any) -> None:
        self._logger.info(
            f"{self._tag(stage, bold=True)}{stage.color}{message}{_RESET}{_context(context)}"
        )

    def step_complete(self, stage: Stage, message: str, **context: Any) -> None:
        self._logger.info(
            f"{self._tag(stage)}{_GREEN}✓ {message}{_RESET}{_context(context)}"
        )

    def step_warning(self, stage: Stage, message: str, error: Exception | None = None) -> None:
        """A tolerated failure: leaked blob, dropped event, failed compensation."""
        self._logger.warning(
            f"{self._tag(stage, _YELLOW)}{_YELLOW}{message}{_RESET}{_failure(error)}"
        )

    def step_error(self, stage: Stage, message: str, error: Exception | None = None) -> None:
        self._logger.error(
            f"{self._tag(stage, _RED, bold=True)}{_RED}{message}{_RESET}{_failure(error)}"
        )

    def detail(self, message: str, **context: Any) -> None:
        self._logger.info(f"   {_GRAY}├─ {message}{_RESET}{_context(context, _DIM)}")

    def stats(self, **counters: Any) -> None:
        joined = " | ".join(f"{k}: {v}" for k, v in counters.items())
        self._logger.info(f"   {_GRAY}📈 {joined}{_RESET}")

    @contextmanager
    def timed_step(self, stage: Stage, message: str, **context: Any) -> Iterator[None]:
        """Log start and end of a shard or registry call with its elapsed time."""
        self.step_start(stage, message, **context)
        started = time.perf_counter()
        try:
            yield
        except Exception as exc:
            self.step_error(
                stage, f"{message} failed after {time.perf_counter() - started:.2f}s", error=exc
            )
            raise
        self.step_complete(stage, f"{message} ({time.perf_counter() - started:.2f}s)", **context)
