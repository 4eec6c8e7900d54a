"""
Concurrent, timeout-bounded evaluation of module probes.

Every probe runs on its own daemon thread against the frozen context
snapshot. The caller waits for each thread until that probe's deadline and
no longer: a probe that is still running is abandoned, its eventual output
discarded, and the module reported as absent. Daemon threads never keep
the process alive, so a hung probe cannot delay the shell.
"""
import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping, Optional, Sequence

from .config import PromptConfig
from .context import Context
from .modules.base import ModuleDescriptor, ModuleResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskOutcome:
    """Outcome of one bounded task."""
    value: Any = None
    error: Optional[BaseException] = None
    timed_out: bool = False
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None and not self.timed_out


class _Worker(threading.Thread):
    def __init__(self, name: str, func: Callable[[], Any]) -> None:
        super().__init__(name=f"psline-{name}", daemon=True)
        self._func = func
        self.value: Any = None
        self.error: Optional[BaseException] = None
        self.elapsed_ms = 0.0

    def run(self) -> None:
        started = time.perf_counter()
        try:
            self.value = self._func()
        except Exception as e:
            self.error = e
        finally:
            self.elapsed_ms = (time.perf_counter() - started) * 1000


def run_bounded(tasks: Mapping[str, tuple]) -> dict[str, TaskOutcome]:
    """Run callables concurrently, each bounded by its own timeout.

    Args:
        tasks: Name to ``(callable, timeout_ms)``.

    Returns:
        Name to :class:`TaskOutcome`, in the order of ``tasks``. Returns
        once every task has finished or passed its deadline.
    """
    started = time.perf_counter()
    workers: dict[str, tuple[_Worker, float]] = {}
    for name, (func, timeout_ms) in tasks.items():
        worker = _Worker(name, func)
        worker.start()
        workers[name] = (worker, started + max(timeout_ms, 0) / 1000)

    outcomes: dict[str, TaskOutcome] = {}
    for name, (worker, deadline) in sorted(workers.items(), key=lambda item: item[1][1]):
        worker.join(max(0.0, deadline - time.perf_counter()))
        if worker.is_alive():
            outcomes[name] = TaskOutcome(
                timed_out=True,
                elapsed_ms=(time.perf_counter() - started) * 1000,
            )
        else:
            outcomes[name] = TaskOutcome(
                value=worker.value,
                error=worker.error,
                elapsed_ms=worker.elapsed_ms,
            )

    return {name: outcomes[name] for name in tasks}


@dataclass(frozen=True)
class ProbeOutcome:
    """How one module's probe went, for the debug commands."""
    name: str
    result: ModuleResult
    elapsed_ms: float
    timed_out: bool = False
    error: Optional[str] = None


class Scheduler:
    """Evaluates active modules concurrently.

    Example:
        scheduler = Scheduler(config)
        results = scheduler.evaluate(active_modules, context)
        results["git_branch"].get("branch")
    """

    def __init__(self, config: PromptConfig) -> None:
        """Initialize the Scheduler.

        Args:
            config: Supplies module options and the default timeout.
        """
        self._config = config

    def evaluate(self, modules: Sequence[ModuleDescriptor], context: Context) -> dict[str, ModuleResult]:
        """Evaluate every module's probe.

        Returns:
            Module name to result. Modules that timed out or failed map to
            the absent result.
        """
        return {outcome.name: outcome.result for outcome in self.evaluate_timed(modules, context)}

    def evaluate_timed(self, modules: Sequence[ModuleDescriptor], context: Context) -> list[ProbeOutcome]:
        """Evaluate every module's probe and report timings.

        Returns:
            One ProbeOutcome per module, in the order given.
        """
        tasks = {}
        for module in modules:
            options = self._config.module(module.name)
            timeout_ms = module.timeout_for(options, self._config.command_timeout)
            tasks[module.name] = (_bind(module, context, options, timeout_ms), timeout_ms)

        outcomes = []
        for name, outcome in run_bounded(tasks).items():
            if outcome.timed_out:
                logger.debug(f"Module '{name}' timed out after {outcome.elapsed_ms:.1f}ms")
                outcomes.append(ProbeOutcome(name, ModuleResult.absent(), outcome.elapsed_ms, timed_out=True))
            elif outcome.error is not None:
                logger.warning(f"Module '{name}' failed: {outcome.error!r}")
                outcomes.append(ProbeOutcome(
                    name, ModuleResult.absent(), outcome.elapsed_ms, error=repr(outcome.error)
                ))
            elif not isinstance(outcome.value, ModuleResult):
                logger.warning(f"Module '{name}' returned {type(outcome.value).__name__}, not a result")
                outcomes.append(ProbeOutcome(name, ModuleResult.absent(), outcome.elapsed_ms))
            else:
                outcomes.append(ProbeOutcome(name, outcome.value, outcome.elapsed_ms))

        return outcomes


def _bind(module: ModuleDescriptor, context: Context, options, timeout_ms: int) -> Callable[[], ModuleResult]:
    # Commands the probe runs share the probe's own budget
    bounded = replace(context, command_timeout_ms=timeout_ms)

    def call() -> ModuleResult:
        return module.evaluate(bounded, options)
    return call
