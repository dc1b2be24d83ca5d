"""Session cleanup coordinator for signal-safe resource teardown."""

import asyncio
import logging
import os
import signal
import sys
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from bubble_bot.managers.container_manager import ContainerManager
from bubble_bot.managers.network_manager import NetworkManager
from bubble_bot.utils import get_logger

logger = get_logger(__name__)

TERMINATION_SIGNALS = (signal.SIGINT, signal.SIGTERM)


@dataclass
class CleanupRegistry:
    """Resources created by one session, in creation order."""

    dev_container: Optional[str] = None
    services: List[str] = field(default_factory=list)
    network: Optional[str] = None

    def is_empty(self) -> bool:
        return self.dev_container is None and not self.services and self.network is None


def terminate_process(exit_code: int) -> None:
    """Flush logs and streams, then exit without unwinding."""
    logging.shutdown()
    sys.stdout.flush()
    sys.stderr.flush()
    os._exit(exit_code)


class SessionCleanupCoordinator:
    """Tracks session resources and tears them down exactly once.

    Teardown is reached either by the foreground session finishing normally,
    or by the signal listener when SIGINT/SIGTERM arrives first. The
    registry is drained under the lock, so whichever path comes second
    waits for the first teardown and performs no engine calls of its own.
    Resources registered after the drain are removed immediately.
    """

    def __init__(
        self,
        container_manager: ContainerManager,
        network_manager: NetworkManager,
        network: str | None = None,
        exit_func: Callable[[int], None] | None = None,
    ) -> None:
        """
        Initialize cleanup coordinator.

        Args:
            container_manager: Manager used to remove containers
            network_manager: Manager used to remove the network
            network: Network name known before creation, if any
            exit_func: Called with ``128 + signum`` after signal-path teardown
        """
        self.container_manager = container_manager
        self.network_manager = network_manager
        self._exit_func = exit_func or terminate_process
        self._registry = CleanupRegistry(network=network)
        self._lock = asyncio.Lock()
        self._closed = False
        self._teardown_task: asyncio.Task | None = None
        self._listener: asyncio.Task | None = None
        self._signal_received: asyncio.Future | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def is_closed(self) -> bool:
        """
        Check whether teardown has begun.

        Returns:
            True once the registry has been drained
        """
        return self._closed

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def register_dev_container(self, container_id: str) -> None:
        """Record the dev container for teardown."""
        async with self._lock:
            if not self._closed:
                self._registry.dev_container = container_id
                return
        logger.warning(
            "Dev container created after teardown began, removing it",
            extra={"container_id": container_id},
        )
        await self._remove_container(container_id)

    async def register_service(self, container_id: str) -> None:
        """Record a service container for teardown."""
        async with self._lock:
            if not self._closed:
                self._registry.services.append(container_id)
                return
        logger.warning(
            "Service container created after teardown began, removing it",
            extra={"container_id": container_id},
        )
        await self._remove_container(container_id)

    async def register_network(self, name: str) -> None:
        """Record the session network for teardown."""
        async with self._lock:
            if not self._closed:
                self._registry.network = name
                return
        logger.warning(
            "Network registered after teardown began, removing it",
            extra={"network": name},
        )
        await self.network_manager.remove_network(name)

    # ------------------------------------------------------------------
    # Signal listener
    # ------------------------------------------------------------------

    def arm(self) -> None:
        """Install SIGINT/SIGTERM handlers and start the background listener."""
        if self._listener is not None:
            logger.warning("Cleanup coordinator already armed")
            return

        self._loop = asyncio.get_running_loop()
        self._signal_received = self._loop.create_future()
        setup_signal_handlers(self._loop, self._on_signal)
        self._listener = asyncio.create_task(self._listen())
        logger.debug("Cleanup coordinator armed")

    def _on_signal(self, signum: int) -> None:
        if self._signal_received is not None and not self._signal_received.done():
            self._signal_received.set_result(signum)

    async def _listen(self) -> None:
        # Shielded so cancelling the listener leaves the future open for disarm
        await self._handle_signal(await asyncio.shield(self._signal_received))

    async def _handle_signal(self, signum: int) -> None:
        sig_name = signal.Signals(signum).name
        logger.warning(f"Received {sig_name}, cleaning up")
        await self.teardown()
        self._exit_func(128 + signum)

    async def disarm(self) -> None:
        """
        Stop the background listener and restore default signal handling.

        If a signal already fired, the listener is allowed to finish its
        teardown and exit instead of being cancelled.
        """
        if self._listener is None:
            return

        listener, self._listener = self._listener, None
        if self._signal_received is not None and self._signal_received.done():
            await listener
        else:
            listener.cancel()
            try:
                await listener
            except asyncio.CancelledError:
                # Cancelling an idle listener is the normal path
                pass
            if self._signal_received is not None and self._signal_received.done():
                # The signal landed while the listener was being cancelled
                await self._handle_signal(self._signal_received.result())

        if self._loop is not None:
            remove_signal_handlers(self._loop)
        logger.debug("Cleanup coordinator disarmed")

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def teardown(self) -> None:
        """
        Remove every registered resource.

        Order: dev container, service containers in registration order,
        then the network. A failure at one step is logged and does not
        block later steps. Safe to call more than once.
        """
        async with self._lock:
            if self._teardown_task is None:
                self._closed = True
                registry, self._registry = self._registry, CleanupRegistry()
                self._teardown_task = asyncio.create_task(self._release(registry))
            task = self._teardown_task
        await asyncio.shield(task)

    async def _release(self, registry: CleanupRegistry) -> None:
        if registry.is_empty():
            logger.debug("Nothing to tear down")
            return

        logger.info("Tearing down session resources")

        if registry.dev_container is not None:
            await self._remove_container(registry.dev_container)

        for container_id in registry.services:
            await self._remove_container(container_id)

        if registry.network is not None:
            await self.network_manager.remove_network(registry.network)

        logger.info("Session teardown complete")

    async def _remove_container(self, container_id: str) -> None:
        try:
            await self.container_manager.stop_and_remove(container_id)
        except Exception as e:
            logger.warning(
                "Failed to remove container during teardown",
                extra={"container_id": container_id, "error": str(e)},
            )


def setup_signal_handlers(
    loop: asyncio.AbstractEventLoop, handler: Callable[[int], None]
) -> None:
    """
    Route SIGTERM and SIGINT to a handler running on the event loop.

    Args:
        loop: Running event loop
        handler: Called with the signal number
    """
    for signum in TERMINATION_SIGNALS:
        try:
            loop.add_signal_handler(signum, handler, signum)
        except NotImplementedError:
            # Event loops without signal support (Windows)
            signal.signal(
                signum, lambda s, _frame: loop.call_soon_threadsafe(handler, s)
            )

    logger.debug("Signal handlers registered for session cleanup")


def remove_signal_handlers(loop: asyncio.AbstractEventLoop) -> None:
    """Restore default handling of SIGTERM and SIGINT."""
    for signum in TERMINATION_SIGNALS:
        try:
            loop.remove_signal_handler(signum)
        except NotImplementedError:
            signal.signal(signum, signal.SIG_DFL)
