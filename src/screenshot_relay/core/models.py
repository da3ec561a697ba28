"""Shared data models for the screenshot relay."""

import math
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_PADDING = 8
DEFAULT_TRIM_THRESHOLD = 10
TRUTHY_FLAGS = ("1", "true", "yes", "on")


def coerce_number(value: Any) -> Optional[float]:
    """Return ``value`` as a finite float, or None when it is not one."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def coerce_int(value: Any) -> Optional[int]:
    """Return ``value`` truncated to an int, or None when it is not numeric."""
    number = coerce_number(value)
    return None if number is None else int(number)


def parse_flag(value: Any) -> bool:
    """Interpret query-string style booleans such as ``dryRun=1``."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in TRUTHY_FLAGS


class TransformMode(str, Enum):
    """Region extraction strategy."""

    AUTO = "auto"
    MANUAL = "manual"


class Rectangle(BaseModel):
    """A resolved extraction rectangle, in pixels."""

    model_config = ConfigDict(frozen=True)

    left: int = Field(ge=0)
    top: int = Field(ge=0)
    width: int = Field(ge=0)
    height: int = Field(ge=0)

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def bottom(self) -> int:
        return self.top + self.height

    def as_crop_box(self) -> Tuple[int, int, int, int]:
        """Return the Pillow ``(left, upper, right, lower)`` tuple."""
        return (self.left, self.top, self.right, self.bottom)

    def fits_within(self, image_width: int, image_height: int) -> bool:
        return (
            self.width >= 1
            and self.height >= 1
            and self.right <= image_width
            and self.bottom <= image_height
        )


class RequestedBox(BaseModel):
    """A caller-supplied box before clamping.

    Values may be missing, negative or out of range; ``RegionResolver``
    turns them into a valid ``Rectangle``.
    """

    model_config = ConfigDict(frozen=True)

    left: Optional[float] = None
    top: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None

    @field_validator("left", "top", "width", "height", mode="before")
    @classmethod
    def _finite_or_missing(cls, value: Any) -> Optional[float]:
        return coerce_number(value)


class ImageBuffer(BaseModel):
    """Encoded image bytes plus the dimensions derived from them."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None
    content_type: Optional[str] = None

    @property
    def size(self) -> Optional[Tuple[int, int]]:
        if self.width is None or self.height is None:
            return None
        return (self.width, self.height)

    def __len__(self) -> int:
        return len(self.data)


class FetchRequest(BaseModel):
    """A single fetch attempt."""

    url: str
    attempt: int = Field(default=1, ge=1)


class TransformOptions(BaseModel):
    """Options for the transform pipeline.

    Numeric fields never fail validation: anything that is not a usable
    number falls back to its default.
    """

    box: Optional[RequestedBox] = None
    padding: int = DEFAULT_PADDING
    resize_width: Optional[int] = None
    trim_threshold: int = DEFAULT_TRIM_THRESHOLD

    @field_validator("padding", mode="before")
    @classmethod
    def _padding_or_default(cls, value: Any) -> int:
        padding = coerce_int(value)
        if padding is None or padding < 0:
            return DEFAULT_PADDING
        return padding

    @field_validator("resize_width", mode="before")
    @classmethod
    def _resize_width_or_none(cls, value: Any) -> Optional[int]:
        return coerce_int(value)

    @field_validator("trim_threshold", mode="before")
    @classmethod
    def _threshold_or_default(cls, value: Any) -> int:
        threshold = coerce_int(value)
        if threshold is None or threshold < 0:
            return DEFAULT_TRIM_THRESHOLD
        return threshold

    @property
    def mode(self) -> TransformMode:
        return TransformMode.MANUAL if self.box is not None else TransformMode.AUTO

    @classmethod
    def from_params(
        cls,
        pad: Any = None,
        resize_width: Any = None,
        box: Any = None,
        default_padding: int = DEFAULT_PADDING,
        trim_threshold: int = DEFAULT_TRIM_THRESHOLD,
    ) -> "TransformOptions":
        """Build options from raw query-string values."""
        from .region import parse_box

        return cls(
            box=parse_box(box) if box not in (None, "") else None,
            padding=default_padding if pad in (None, "") else pad,
            resize_width=resize_width,
            trim_threshold=trim_threshold,
        )


class RelayRequest(BaseModel):
    """Raw inbound parameters for one relay call."""

    screenshots: Optional[str] = None
    dry_run: bool = False
    pad: Optional[str] = None
    resize_width: Optional[str] = None
    box: Optional[str] = None
    caption: Optional[str] = None

    @field_validator("dry_run", mode="before")
    @classmethod
    def _flag(cls, value: Any) -> bool:
        return parse_flag(value)

    @field_validator("pad", "resize_width", "box", "caption", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)

    @classmethod
    def from_query(cls, params: Mapping[str, Any]) -> "RelayRequest":
        """Map the webhook's camelCase query parameters onto a request."""
        return cls(
            screenshots=params.get("screenshots"),
            dry_run=params.get("dryRun"),
            pad=params.get("pad"),
            resize_width=params.get("resizeWidth"),
            box=params.get("box"),
            caption=params.get("caption"),
        )


class DeliveryResult(BaseModel):
    """Outcome of handing an image to a relay sink."""

    ok: bool = False
    error_kind: Optional[str] = None
    message: str = ""
    detail: Dict[str, Any] = Field(default_factory=dict)


class PipelineResult(BaseModel):
    """Outcome of one relay call. Failures never carry an image."""

    source_url: str = ""
    ok: bool = False
    image: Optional[ImageBuffer] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    message: str = ""
    detail: Dict[str, Any] = Field(default_factory=dict)
    delivered: bool = False
    dry_run: bool = False
    timings: Dict[str, float] = Field(default_factory=dict)
