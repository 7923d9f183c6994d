"""Compile hooks: fire-and-forget observers of compilation.

Hooks receive every finished compilation and every failure.  They are the
engine's telemetry seam: a hook may forward timings and cache-hit rates to an
analytics sink.  A hook that raises is logged and ignored, so telemetry can
never break a compile.
"""

import logging
import threading
from typing import Any

from .errors import TemplateEngineError
from .models import CompiledResult

logger = logging.getLogger(__name__)


class CompileHook:
    """Base class for compile observers.

    Subclasses override whichever callbacks they need.

    Attributes
    ----------
    name : str
        Hook name used in log messages
    enabled : bool
        Disabled hooks are skipped
    """

    name: str = "CompileHook"
    description: str = "Base class for compile hooks"

    def __init__(self, **config: Any):
        self.config = config
        self.enabled = config.get("enabled", True)

    def on_compile_complete(self, result: CompiledResult) -> None:
        """Called after a successful compile (including cache hits)."""

    def on_compile_error(self, template_id: str, error: TemplateEngineError) -> None:
        """Called when a compile raises a template engine error."""


class CompileStatsHook(CompileHook):
    """Keep in-memory compile statistics.

    Tracks compilations, cache hits, failures by error code and the mean
    compile time of non-cached compilations.
    """

    name = "CompileStats"
    description = "In-memory compile statistics"

    def __init__(self, **config: Any):
        super().__init__(**config)
        self._lock = threading.Lock()
        self.compilations = 0
        self.cache_hits = 0
        self.failures: dict[str, int] = {}
        self._compile_time_total = 0.0
        self._timed = 0

    def on_compile_complete(self, result: CompiledResult) -> None:
        with self._lock:
            self.compilations += 1
            if result.metadata.cache_hit:
                self.cache_hits += 1
            else:
                self._compile_time_total += result.metadata.compilation_time_ms
                self._timed += 1

    def on_compile_error(self, template_id: str, error: TemplateEngineError) -> None:
        with self._lock:
            self.failures[error.code] = self.failures.get(error.code, 0) + 1

    @property
    def mean_compile_time_ms(self) -> float:
        return self._compile_time_total / self._timed if self._timed else 0.0

    def snapshot(self) -> dict[str, Any]:
        """Return the current statistics as a dict."""
        with self._lock:
            return {
                "compilations": self.compilations,
                "cache_hits": self.cache_hits,
                "failures": dict(self.failures),
                "mean_compile_time_ms": round(self.mean_compile_time_ms, 3),
            }


def notify_complete(hooks: list[CompileHook], result: CompiledResult) -> None:
    """Run ``on_compile_complete`` on every enabled hook, logging failures."""
    for hook in hooks:
        if not hook.enabled:
            continue
        try:
            hook.on_compile_complete(result)
        except Exception as e:
            logger.error(f"Hook {hook.name} failed in on_compile_complete: {e}", exc_info=True)


def notify_error(hooks: list[CompileHook], template_id: str, error: TemplateEngineError) -> None:
    """Run ``on_compile_error`` on every enabled hook, logging failures."""
    for hook in hooks:
        if not hook.enabled:
            continue
        try:
            hook.on_compile_error(template_id, error)
        except Exception as e:
            logger.error(f"Hook {hook.name} failed in on_compile_error: {e}", exc_info=True)
