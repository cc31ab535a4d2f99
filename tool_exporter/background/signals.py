# tool_exporter/background/signals.py
"""
SIGINT/SIGTERM handling for the long-running modes (run, serve).

The first signal stops the runner (running exports roll back and fail,
queued exports stay pending) and closes the store. Repeated signals while
that shutdown is in flight are ignored.
"""

import asyncio
import logging
import signal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tool_exporter.background.lifecycle import ServiceLifecycle

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def setup_signal_handlers(
    lifecycle: "ServiceLifecycle", stop_event: asyncio.Event | None = None
) -> None:
    """
    Register graceful-shutdown handlers on the running loop.

    ProactorEventLoop (Windows) has no add_signal_handler; there the handlers
    are installed with signal.signal() and hop back onto the loop.

    Args:
        lifecycle: Service lifecycle to shut down
        stop_event: Set once shutdown completes so a foreground wait can return
    """
    loop = asyncio.get_running_loop()
    in_flight: list[asyncio.Task] = []

    async def _shutdown(sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name}; stopping exports")
        try:
            await lifecycle.shutdown()
        finally:
            if stop_event is not None:
                stop_event.set()
        logger.info("Shutdown complete")

    def _trigger(sig: signal.Signals) -> None:
        if in_flight and not in_flight[0].done():
            logger.warning(f"Ignoring {sig.name}: shutdown already in progress")
            return
        in_flight[:] = [loop.create_task(_shutdown(sig), name=f"shutdown-{sig.name}")]

    try:
        for sig in SHUTDOWN_SIGNALS:
            loop.add_signal_handler(sig, _trigger, sig)
        logger.info("Signal handlers registered on event loop")
    except NotImplementedError:
        def _from_signal_module(sig_num, frame) -> None:
            loop.call_soon_threadsafe(_trigger, signal.Signals(sig_num))

        for sig in SHUTDOWN_SIGNALS:
            signal.signal(sig, _from_signal_module)
        logger.info("Signal handlers registered via signal.signal()")
