"""Signal helpers for graceful shutdown."""

from __future__ import annotations

import asyncio
import signal
from typing import Any, Callable, Optional

from joblock.utils.logging import get_logger

logger = get_logger(__name__)


def _make_stop(on_stop: Any) -> Callable[[], None]:
    def _stop() -> None:
        for method_name in ("stop", "shutdown", "cleanup", "close"):
            method = getattr(on_stop, method_name, None)
            if callable(method):
                method()
                return
        if callable(on_stop):
            on_stop()
            return
        logger.warning("no_stop_method", target=type(on_stop).__name__)

    return _stop


def setup_signal_handlers(
    on_stop: Any, loop: Optional[asyncio.AbstractEventLoop] = None
) -> None:
    """
    Register SIGINT/SIGTERM handlers.

    The `on_stop` object can provide a `stop`, `shutdown`, `cleanup` or `close`
    method, or be a plain callable. When `loop` is given the handlers are
    installed on the event loop so the callback runs inside it.
    """
    stop = _make_stop(on_stop)

    def handler(signum: int, _frame: Any = None) -> None:
        logger.info("received_signal", signal=signum)
        stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        if loop is not None:
            loop.add_signal_handler(sig, handler, int(sig))
        else:
            signal.signal(sig, handler)


__all__ = ["setup_signal_handlers"]
