"""Protocol definitions for dependency injection and testability."""

from abc import ABC, abstractmethod
from typing import Any, Protocol

from .models import DeliveryResult, ImageBuffer, TransformOptions


class HttpSessionProtocol(Protocol):
    """The subset of ``requests.Session`` the relay uses."""

    def get(self, url: str, **kwargs: Any) -> Any:
        """Send a GET request."""
        ...

    def post(self, url: str, **kwargs: Any) -> Any:
        """Send a POST request."""
        ...


class LoggerProtocol(Protocol):
    """Protocol for logging operations."""

    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        ...

    def info(self, message: str, *args: Any, **kwargs: Any) -> None:
        ...

    def warning(self, message: str, *args: Any, **kwargs: Any) -> None:
        ...

    def error(self, message: str, *args: Any, **kwargs: Any) -> None:
        ...


class ImageSource(ABC):
    """Where source screenshots come from."""

    @abstractmethod
    def fetch(self, url: str) -> ImageBuffer:
        """Retrieve the image at ``url``."""
        ...


class ImageTransformer(ABC):
    """Turns a source image into the image to relay."""

    @abstractmethod
    def process(self, image: ImageBuffer, options: TransformOptions) -> ImageBuffer:
        """Apply the transform chain selected by ``options``."""
        ...


class ImageSink(ABC):
    """Where finished images are delivered."""

    @abstractmethod
    def deliver(
        self, image: ImageBuffer, target: str, caption: str = ""
    ) -> DeliveryResult:
        """Hand ``image`` to ``target``. Failures are reported, not raised."""
        ...
