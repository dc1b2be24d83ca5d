"""Unit tests for Cleaner."""

from unittest.mock import MagicMock

import pytest
from docker.errors import APIError

from bubble_bot.managers.cleaner import Cleaner, CleanReport
from bubble_bot.utils.exceptions import DockerAPIError


def _named(name: str) -> MagicMock:
    resource = MagicMock()
    resource.name = name
    return resource


def _image(tags, image_id="sha256:1") -> MagicMock:
    image = MagicMock()
    image.tags = tags
    image.id = image_id
    return image


@pytest.fixture
def cleaner(mock_docker_client):
    """Create a Cleaner with a mocked Docker client."""
    mock_docker_client.images.list.return_value = []
    mock_docker_client.networks.list.return_value = []
    mock_docker_client.volumes.list.return_value = []
    return Cleaner(mock_docker_client)


@pytest.mark.asyncio
async def test_nothing_to_clean(cleaner):
    """Test the empty report."""
    report = await cleaner.clean()

    assert report.is_empty()
    assert report.render() == "Nothing to clean."


@pytest.mark.asyncio
async def test_removes_images_and_networks(cleaner, mock_docker_client):
    """Test that bubble images and prefixed networks are removed."""
    mock_docker_client.images.list.return_value = [
        _image(["bubble:aaa111bbb222"]),
        _image([], image_id="sha256:dangling"),
    ]
    mock_docker_client.networks.list.return_value = [_named("bubble-app"), _named("bridge")]

    report = await cleaner.clean()

    mock_docker_client.images.list.assert_called_once_with(name="bubble")
    assert report.images == ["bubble:aaa111bbb222", "sha256:dangling"]
    assert report.networks == ["bubble-app"]
    assert report.volumes == []
    mock_docker_client.volumes.list.assert_not_called()
    assert report.render() == (
        "Removed images:\n  bubble:aaa111bbb222\n  sha256:dangling\n"
        "Removed networks:\n  bubble-app"
    )


@pytest.mark.asyncio
async def test_volumes_only_on_request(cleaner, mock_docker_client):
    """Test that data volumes are removed only with remove_volumes."""
    mock_docker_client.volumes.list.return_value = [
        _named("bubble-app-mysql-data"),
        _named("unrelated"),
    ]

    report = await cleaner.clean(remove_volumes=True)

    assert report.volumes == ["bubble-app-mysql-data"]
    mock_docker_client.api.remove_volume.assert_called_once_with("bubble-app-mysql-data")


@pytest.mark.asyncio
async def test_individual_failures_are_skipped(cleaner, mock_docker_client):
    """Test that a failed removal is left out of the report."""
    mock_docker_client.networks.list.return_value = [_named("bubble-a"), _named("bubble-b")]
    mock_docker_client.api.remove_network.side_effect = [APIError("in use"), None]

    report = await cleaner.clean()

    assert report.networks == ["bubble-b"]


@pytest.mark.asyncio
async def test_containers_removed_first_on_request(settings, mock_docker_client):
    """Test that every bubble-bot container goes before images and networks."""
    mock_docker_client.images.list.return_value = []
    mock_docker_client.networks.list.return_value = []
    mock_docker_client.api.containers.return_value = [
        {"Id": "dev1", "Names": ["/bubble-app"]},
        {"Id": "svc1", "Names": ["/bubble-web-mysql"]},
        {"Id": "other", "Names": ["/bubblegum"]},
    ]

    report = await Cleaner(mock_docker_client, settings).clean(remove_containers=True)

    assert report.containers == 2
    removed = [c.args[0] for c in mock_docker_client.api.remove_container.call_args_list]
    assert removed == ["dev1", "svc1"]
    assert report.render() == "Removed 2 leftover container(s)"


@pytest.mark.asyncio
async def test_containers_kept_by_default(cleaner, mock_docker_client):
    """Test that a plain clean never touches containers."""
    await cleaner.clean()

    mock_docker_client.api.containers.assert_not_called()
    mock_docker_client.api.remove_container.assert_not_called()

@pytest.mark.asyncio
async def test_list_failure_raises(cleaner, mock_docker_client):
    """Test that a failed listing is fatal."""
    mock_docker_client.images.list.side_effect = APIError("daemon gone")

    with pytest.raises(DockerAPIError, match="failed to list images"):
        await cleaner.clean()


def test_report_render_volumes_only():
    """Test rendering a report with only volumes."""
    report = CleanReport(volumes=["bubble-app-postgres-data"])

    assert report.render() == "Removed volumes:\n  bubble-app-postgres-data"
