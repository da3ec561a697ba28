"""Core utilities and shared components for the screenshot relay."""

from .config import RelaySettings, load_settings
from .exceptions import (
    ScreenshotRelayError,
    MissingParamError,
    MalformedSignedUrlError,
    InvalidParameterError,
    FetchError,
    TransformError,
    DeliveryError,
    ConfigurationError,
)
from .image_utils import (
    clamp_resize_width,
    decode_image,
    encode_image,
    extract_region,
    pad_image,
    resize_to_width,
    trim_uniform_margins,
)
from .logging_config import configure_logging, get_logger, setup_logger
from .models import (
    DeliveryResult,
    FetchRequest,
    ImageBuffer,
    PipelineResult,
    Rectangle,
    RelayRequest,
    RequestedBox,
    TransformMode,
    TransformOptions,
)
from .region import RegionResolver, parse_box

__all__ = [
    "RelaySettings",
    "load_settings",
    "ScreenshotRelayError",
    "MissingParamError",
    "MalformedSignedUrlError",
    "InvalidParameterError",
    "FetchError",
    "TransformError",
    "DeliveryError",
    "ConfigurationError",
    "clamp_resize_width",
    "decode_image",
    "encode_image",
    "extract_region",
    "pad_image",
    "resize_to_width",
    "trim_uniform_margins",
    "configure_logging",
    "get_logger",
    "setup_logger",
    "DeliveryResult",
    "FetchRequest",
    "ImageBuffer",
    "PipelineResult",
    "Rectangle",
    "RelayRequest",
    "RequestedBox",
    "TransformMode",
    "TransformOptions",
    "RegionResolver",
    "parse_box",
]
