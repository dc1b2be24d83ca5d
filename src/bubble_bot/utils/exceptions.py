"""Custom exceptions for bubble-bot."""


class BubbleError(Exception):
    """Base exception for bubble-bot errors."""

    pass


class ConfigError(BubbleError):
    """Exception raised when the resolved configuration is invalid."""

    pass


class DockerAPIError(BubbleError):
    """Exception raised when Docker API calls fail."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        """
        Initialize DockerAPIError.

        Args:
            message: Error message
            original_error: Original exception from Docker
        """
        self.original_error = original_error
        super().__init__(message)


class DockerDaemonUnreachableError(DockerAPIError):
    """Exception raised when Docker daemon is unreachable."""

    def __init__(
        self,
        message: str = "Docker daemon is unreachable",
        original_error: Exception | None = None,
    ) -> None:
        """
        Initialize DockerDaemonUnreachableError.

        Args:
            message: Error message
            original_error: Original exception from Docker
        """
        super().__init__(message, original_error)


class ImageBuildError(DockerAPIError):
    """Exception raised when an image build fails."""

    def __init__(self, tag: str, message: str, original_error: Exception | None = None) -> None:
        """
        Initialize ImageBuildError.

        Args:
            tag: Image tag that was being built
            message: Error message reported by the engine
            original_error: Original exception from Docker
        """
        self.tag = tag
        super().__init__(f"Docker build error for {tag}: {message}", original_error)


class BuildContextError(BubbleError):
    """Exception raised when a build context file cannot be packaged."""

    def __init__(self, path: str, reason: str) -> None:
        """
        Initialize BuildContextError.

        Args:
            path: Offending context file path
            reason: Reason the path was rejected
        """
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid build context path '{path}': {reason}")


class NetworkError(DockerAPIError):
    """Exception raised when a network operation fails."""

    pass


class ContainerError(DockerAPIError):
    """Exception raised when a container operation fails."""

    pass


class ServiceNotReadyError(BubbleError):
    """Exception raised when a service never passes its readiness probe."""

    def __init__(self, service: str, attempts: int) -> None:
        """
        Initialize ServiceNotReadyError.

        Args:
            service: Short service name
            attempts: Number of probe attempts made
        """
        self.service = service
        self.attempts = attempts
        super().__init__(f"{service} service did not become ready after {attempts} attempts")


class CredentialsError(BubbleError):
    """Exception raised when credentials cannot be written into a container."""

    def __init__(self, container_id: str, reason: str) -> None:
        """
        Initialize CredentialsError.

        Args:
            container_id: Target container ID
            reason: Reason for the failure
        """
        self.container_id = container_id
        super().__init__(f"Failed to write credentials to container {container_id}: {reason}")


def format_cause_chain(error: BaseException) -> str:
    """
    Render an exception and its causes as a single human-readable line.

    Args:
        error: Exception to render

    Returns:
        Messages joined with ": ", outermost first
    """
    parts: list[str] = []
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        message = str(current) or current.__class__.__name__
        if not parts or message not in parts[-1]:
            parts.append(message)
        original = getattr(current, "original_error", None)
        current = current.__cause__ or original
    return ": ".join(parts)
