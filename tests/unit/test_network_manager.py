"""Unit tests for NetworkManager."""

from unittest.mock import MagicMock

import pytest
from docker.errors import APIError

from bubble_bot.managers.network_manager import NetworkManager, matches_network_prefix
from bubble_bot.utils.exceptions import NetworkError


def _network(name: str) -> MagicMock:
    network = MagicMock()
    network.name = name
    return network


@pytest.fixture
def network_manager(mock_docker_client):
    """Create a NetworkManager with a mocked Docker client."""
    return NetworkManager(mock_docker_client)


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("bubble-app", True),
        ("bubble-app-old", True),
        ("bubble-apple", False),
        ("bubble", False),
        ("other-bubble-app", False),
    ],
)
def test_matches_network_prefix(name, expected):
    """Test exact-or-dash-suffix prefix matching."""
    assert matches_network_prefix(name, "bubble-app") is expected


@pytest.mark.asyncio
async def test_ensure_network_reuses_exact_match(network_manager, mock_docker_client):
    """Test that an existing network with the exact name is reused."""
    mock_docker_client.networks.list.return_value = [_network("bubble-app")]

    assert await network_manager.ensure_network("bubble-app") == "bubble-app"

    mock_docker_client.networks.list.assert_called_once_with(names=["bubble-app"])
    mock_docker_client.networks.create.assert_not_called()


@pytest.mark.asyncio
async def test_ensure_network_ignores_partial_match(network_manager, mock_docker_client):
    """Test that a partial name match does not count as existing."""
    mock_docker_client.networks.list.return_value = [_network("bubble-app-old")]

    await network_manager.ensure_network("bubble-app")

    mock_docker_client.networks.create.assert_called_once_with("bubble-app", driver="bridge")


@pytest.mark.asyncio
async def test_ensure_network_create_failure(network_manager, mock_docker_client):
    """Test that a failed create raises NetworkError."""
    mock_docker_client.networks.list.return_value = []
    mock_docker_client.networks.create.side_effect = APIError("pool overlaps")

    with pytest.raises(NetworkError, match="failed to create network bubble-app"):
        await network_manager.ensure_network("bubble-app")


@pytest.mark.asyncio
async def test_network_exists_list_failure(network_manager, mock_docker_client):
    """Test that a failed list raises NetworkError."""
    mock_docker_client.networks.list.side_effect = APIError("daemon gone")

    with pytest.raises(NetworkError):
        await network_manager.network_exists("bubble-app")


@pytest.mark.asyncio
async def test_remove_network_swallows_failure(network_manager, mock_docker_client):
    """Test that removal failures are logged, not raised."""
    mock_docker_client.api.remove_network.side_effect = APIError("has active endpoints")

    await network_manager.remove_network("bubble-app")

    mock_docker_client.api.remove_network.assert_called_once_with("bubble-app")


@pytest.mark.asyncio
async def test_cleanup_stale_removes_only_matching(network_manager, mock_docker_client):
    """Test that stale cleanup skips networks that only share a name prefix."""
    mock_docker_client.networks.list.return_value = [
        _network("bubble-app"),
        _network("bubble-app-x"),
        _network("bubble-apple"),
    ]

    removed = await network_manager.cleanup_stale("bubble-app")

    assert removed == 2
    removed_names = [c.args[0] for c in mock_docker_client.api.remove_network.call_args_list]
    assert removed_names == ["bubble-app", "bubble-app-x"]


@pytest.mark.asyncio
async def test_cleanup_stale_continues_after_failure(network_manager, mock_docker_client):
    """Test that one failed removal does not stop the sweep."""
    mock_docker_client.networks.list.return_value = [
        _network("bubble-app"),
        _network("bubble-app-x"),
    ]
    mock_docker_client.api.remove_network.side_effect = [APIError("in use"), None]

    removed = await network_manager.cleanup_stale("bubble-app")

    assert removed == 1
    assert mock_docker_client.api.remove_network.call_count == 2
