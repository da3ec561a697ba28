"""Testing utilities and fakes for the screenshot relay."""

from .fakes import (
    FakeHttpSession,
    FakeImageSink,
    FakeLogger,
    FakeResponse,
    create_screenshot_image,
    create_test_image,
    image_response,
    telegram_ok_response,
)

__all__ = [
    "FakeHttpSession",
    "FakeImageSink",
    "FakeLogger",
    "FakeResponse",
    "create_screenshot_image",
    "create_test_image",
    "image_response",
    "telegram_ok_response",
]
