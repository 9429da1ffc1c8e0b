import logging
from typing import Any, Callable, Protocol

from fastapi import BackgroundTasks

logger = logging.getLogger(__name__)


class Dispatcher(Protocol):
    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> None: ...


def run_guarded(fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> None:
    """Run a side effect; failures are logged and never reach the caller."""
    try:
        fn(*args, **kwargs)
    except Exception:
        logger.exception("Side effect %s failed", getattr(fn, "__qualname__", repr(fn)))


class InlineDispatcher:
    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> None:
        run_guarded(fn, *args, **kwargs)


class BackgroundTaskDispatcher:
    """Defers side effects until the response has been sent."""

    def __init__(self, background_tasks: BackgroundTasks):
        self._tasks = background_tasks

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> None:
        self._tasks.add_task(run_guarded, fn, *args, **kwargs)
