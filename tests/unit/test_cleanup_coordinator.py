"""Tests for SessionCleanupCoordinator."""

import asyncio
import signal
from unittest.mock import AsyncMock, MagicMock

import pytest

from bubble_bot.managers.cleanup_coordinator import SessionCleanupCoordinator
from bubble_bot.utils.exceptions import ContainerError


@pytest.fixture
def calls():
    """Ordered record of teardown engine calls."""
    return []


@pytest.fixture
def container_manager(calls):
    """Mock container manager recording removals."""
    manager = MagicMock()

    async def stop_and_remove(container_id):
        calls.append(("container", container_id))

    manager.stop_and_remove = AsyncMock(side_effect=stop_and_remove)
    return manager


@pytest.fixture
def network_manager(calls):
    """Mock network manager recording removals."""
    manager = MagicMock()

    async def remove_network(name):
        calls.append(("network", name))

    manager.remove_network = AsyncMock(side_effect=remove_network)
    return manager


@pytest.fixture
def exit_func():
    """Stand-in for process termination."""
    return MagicMock()


@pytest.fixture
def coordinator(container_manager, network_manager, exit_func):
    """Create a coordinator with mocked managers."""
    return SessionCleanupCoordinator(container_manager, network_manager, exit_func=exit_func)


async def _populate(coordinator):
    await coordinator.register_network("bubble-app")
    await coordinator.register_service("svc-mysql")
    await coordinator.register_service("svc-redis")
    await coordinator.register_dev_container("dev")


@pytest.mark.asyncio
async def test_teardown_order(coordinator, calls):
    """Test dev container, then services in registration order, then network."""
    await _populate(coordinator)

    await coordinator.teardown()

    assert calls == [
        ("container", "dev"),
        ("container", "svc-mysql"),
        ("container", "svc-redis"),
        ("network", "bubble-app"),
    ]


@pytest.mark.asyncio
async def test_teardown_twice_is_noop(coordinator, calls):
    """Test that a second teardown makes no engine calls."""
    await _populate(coordinator)

    await coordinator.teardown()
    await coordinator.teardown()

    assert len(calls) == 4


@pytest.mark.asyncio
async def test_concurrent_teardowns_remove_once(coordinator, calls):
    """Test that racing teardowns share one drain and both wait for it."""
    await _populate(coordinator)

    await asyncio.gather(coordinator.teardown(), coordinator.teardown())

    assert len(calls) == 4


@pytest.mark.asyncio
async def test_teardown_failure_does_not_block_later_steps(
    coordinator, container_manager, network_manager
):
    """Test that a failed removal is logged and the rest still runs."""
    await _populate(coordinator)
    container_manager.stop_and_remove.side_effect = ContainerError("boom")

    await coordinator.teardown()

    assert container_manager.stop_and_remove.await_count == 3
    network_manager.remove_network.assert_awaited_once_with("bubble-app")


@pytest.mark.asyncio
async def test_empty_teardown(coordinator, calls):
    """Test that teardown with nothing registered is harmless."""
    await coordinator.teardown()

    assert calls == []
    assert coordinator.is_closed()


@pytest.mark.asyncio
async def test_preknown_network_is_torn_down(container_manager, network_manager, calls):
    """Test that a network passed at construction is removed."""
    coordinator = SessionCleanupCoordinator(container_manager, network_manager, network="net")

    await coordinator.teardown()

    assert calls == [("network", "net")]


@pytest.mark.asyncio
async def test_registration_after_teardown_is_removed_immediately(coordinator, calls):
    """Test that a resource created after the drain is not leaked."""
    await coordinator.register_dev_container("dev")
    await coordinator.teardown()
    calls.clear()

    await coordinator.register_service("late-svc")
    await coordinator.register_dev_container("late-dev")
    await coordinator.register_network("late-net")

    assert calls == [
        ("container", "late-svc"),
        ("container", "late-dev"),
        ("network", "late-net"),
    ]

    calls.clear()
    await coordinator.teardown()
    assert calls == []


@pytest.mark.asyncio
async def test_signal_triggers_teardown_and_exit(coordinator, exit_func, calls):
    """Test the signal path: teardown, then exit with 128 + signum."""
    await _populate(coordinator)
    coordinator.arm()

    coordinator._on_signal(signal.SIGTERM)
    await coordinator.disarm()

    assert len(calls) == 4
    exit_func.assert_called_once_with(128 + signal.SIGTERM)

    await coordinator.teardown()
    assert len(calls) == 4


@pytest.mark.asyncio
async def test_real_signal_is_delivered(coordinator, exit_func, calls):
    """Test that SIGINT sent to the process reaches the listener."""
    await coordinator.register_dev_container("dev")
    coordinator.arm()

    signal.raise_signal(signal.SIGINT)
    for _ in range(50):
        if exit_func.called:
            break
        await asyncio.sleep(0.01)
    await coordinator.disarm()

    exit_func.assert_called_once_with(128 + signal.SIGINT)
    assert calls == [("container", "dev")]


@pytest.mark.asyncio
async def test_disarm_without_signal_does_not_exit(coordinator, exit_func, calls):
    """Test that the normal path cancels the listener quietly."""
    await _populate(coordinator)
    coordinator.arm()

    await coordinator.disarm()
    await coordinator.teardown()

    exit_func.assert_not_called()
    assert len(calls) == 4


@pytest.mark.asyncio
async def test_second_signal_is_ignored(coordinator, exit_func):
    """Test that repeated signals trigger a single teardown and exit."""
    coordinator.arm()

    coordinator._on_signal(signal.SIGINT)
    coordinator._on_signal(signal.SIGTERM)
    await coordinator.disarm()

    exit_func.assert_called_once_with(128 + signal.SIGINT)


@pytest.mark.asyncio
async def test_signal_during_disarm_is_not_dropped(coordinator, exit_func, calls):
    """Test that a signal arriving while the listener is being cancelled still exits."""
    await _populate(coordinator)
    coordinator.arm()
    await asyncio.sleep(0)

    asyncio.get_running_loop().call_soon(coordinator._on_signal, signal.SIGTERM)
    await coordinator.disarm()

    exit_func.assert_called_once_with(128 + signal.SIGTERM)
    assert len(calls) == 4


@pytest.mark.asyncio
async def test_signal_during_teardown_while_armed(
    coordinator, container_manager, exit_func, calls
):
    """Test that a signal during normal teardown neither interrupts nor repeats it."""
    await _populate(coordinator)
    coordinator.arm()

    async def stop_and_remove(container_id):
        if not calls:
            coordinator._on_signal(signal.SIGINT)
        calls.append(("container", container_id))

    container_manager.stop_and_remove.side_effect = stop_and_remove

    await coordinator.teardown()
    await coordinator.disarm()

    assert calls == [
        ("container", "dev"),
        ("container", "svc-mysql"),
        ("container", "svc-redis"),
        ("network", "bubble-app"),
    ]
    exit_func.assert_called_once_with(128 + signal.SIGINT)
