"""Image builder with content-hash caching."""

import asyncio
import hashlib
import io
import tarfile
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Iterable

from docker import DockerClient
from docker.errors import DockerException

from bubble_bot.models.naming import IMAGE_REPOSITORY
from bubble_bot.templates import ContextFile
from bubble_bot.utils import get_logger
from bubble_bot.utils.docker_client import get_docker_client
from bubble_bot.utils.exceptions import BuildContextError, DockerAPIError, ImageBuildError

logger = get_logger(__name__)

DOCKERFILE_NAME = "Dockerfile"
TAG_HASH_LENGTH = 12


@dataclass
class BuildResult:
    """Result of an image build or cache lookup."""

    tag: str
    cached: bool


class ImageBuilder:
    """Builds dev images tagged by the SHA-256 of their rendered Dockerfile."""

    def __init__(self, docker_client: DockerClient | None = None) -> None:
        """
        Initialize image builder.

        Args:
            docker_client: Docker client (defaults to the global client)
        """
        self.docker_client: DockerClient = docker_client or get_docker_client()

    @staticmethod
    def compute_tag(dockerfile: str) -> str:
        """
        Compute the content-addressed tag for a rendered Dockerfile.

        Args:
            dockerfile: Fully rendered Dockerfile text

        Returns:
            Tag of the form ``bubble:<first 12 hex chars of sha256>``
        """
        digest = hashlib.sha256(dockerfile.encode("utf-8")).hexdigest()
        return f"{IMAGE_REPOSITORY}:{digest[:TAG_HASH_LENGTH]}"

    async def image_exists(self, tag: str) -> bool:
        """
        Check whether an image with the given tag exists locally.

        Args:
            tag: Image tag

        Returns:
            True if the engine reports a matching reference

        Raises:
            DockerAPIError: If the image list cannot be retrieved
        """
        try:
            images = await asyncio.to_thread(
                self.docker_client.images.list, filters={"reference": tag}
            )
        except DockerException as e:
            raise DockerAPIError(f"failed to list Docker images: {e}", e) from e
        return len(images) > 0

    async def build(
        self,
        dockerfile: str,
        context_files: Iterable[ContextFile] = (),
        force_rebuild: bool = False,
    ) -> BuildResult:
        """
        Build an image, or reuse the cached one with the same content hash.

        Args:
            dockerfile: Fully rendered Dockerfile text
            context_files: Additional files placed in the build context
            force_rebuild: Build even if the tag already exists

        Returns:
            BuildResult with the tag and whether the cache was hit

        Raises:
            BuildContextError: If a context file path is invalid
            ImageBuildError: If the engine reports a build failure
            DockerAPIError: If the cache lookup fails
        """
        tag = self.compute_tag(dockerfile)

        if not force_rebuild and await self.image_exists(tag):
            logger.info("Image cache hit, skipping build", extra={"tag": tag})
            return BuildResult(tag=tag, cached=True)

        logger.info("Building image", extra={"tag": tag})
        context = self.create_build_context(dockerfile, context_files)
        await asyncio.to_thread(self._run_build, tag, context)
        logger.info("Image build complete", extra={"tag": tag})

        return BuildResult(tag=tag, cached=False)

    def _run_build(self, tag: str, context: bytes) -> None:
        """Submit the build and drain its output stream (blocking)."""
        try:
            stream = self.docker_client.api.build(
                fileobj=io.BytesIO(context),
                custom_context=True,
                tag=tag,
                rm=True,
                forcerm=True,
                decode=True,
            )
            for chunk in stream:
                if "error" in chunk or "errorDetail" in chunk:
                    detail = chunk.get("errorDetail") or {}
                    message = chunk.get("error") or detail.get("message") or "unknown error"
                    logger.error("Image build failed", extra={"tag": tag, "error": message})
                    raise ImageBuildError(tag, message.strip())

                line = chunk.get("stream", "").rstrip()
                if line:
                    logger.info(line)
        except DockerException as e:
            logger.error("Image build stream failed", extra={"tag": tag, "error": str(e)})
            raise ImageBuildError(tag, f"build stream error: {e}", e) from e

    @staticmethod
    def create_build_context(dockerfile: str, context_files: Iterable[ContextFile] = ()) -> bytes:
        """
        Package the Dockerfile and context files into an in-memory tar archive.

        Args:
            dockerfile: Dockerfile text, stored as the root entry ``Dockerfile``
            context_files: Additional files with their modes

        Returns:
            Uncompressed tar archive bytes

        Raises:
            BuildContextError: If a context file path is empty, absolute,
                escapes the context root, or shadows the Dockerfile
        """
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w") as tar:
            _add_file(tar, DOCKERFILE_NAME, dockerfile.encode("utf-8"), 0o644)
            for context_file in context_files:
                name = _validate_context_path(context_file.path)
                _add_file(tar, name, context_file.content, context_file.mode)
        return buffer.getvalue()


def _validate_context_path(path: str) -> str:
    if not path or not path.strip():
        raise BuildContextError(path, "path is empty")
    posix = PurePosixPath(path)
    if posix.is_absolute():
        raise BuildContextError(path, "path must be relative to the context root")
    if ".." in posix.parts:
        raise BuildContextError(path, "path escapes the context root")
    normalized = str(posix)
    if normalized == DOCKERFILE_NAME:
        raise BuildContextError(path, "path collides with the generated Dockerfile")
    return normalized


def _add_file(tar: tarfile.TarFile, name: str, data: bytes, mode: int) -> None:
    info = tarfile.TarInfo(name=name)
    info.size = len(data)
    info.mode = mode
    tar.addfile(info, io.BytesIO(data))
