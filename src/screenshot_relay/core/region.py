"""Region resolution: turn a requested box into a rectangle that fits the image."""

from typing import Any, Optional, Union

from .exceptions import InvalidParameterError, TransformError
from .models import Rectangle, RequestedBox, coerce_number

BoxLike = Union[Rectangle, RequestedBox]


def clamp(value: int, low: int, high: int) -> int:
    """Clamp ``value`` into ``[low, high]``."""
    return max(low, min(value, high))


def parse_box(raw: Any) -> RequestedBox:
    """
    Parse a ``left,top,width,height`` string into a requested box.

    Members that are not finite numbers are kept as missing and resolved
    later; only a string with the wrong number of members is rejected.

    Raises:
        InvalidParameterError: If ``raw`` does not have exactly four members.
    """
    if isinstance(raw, RequestedBox):
        return raw

    parts = [part.strip() for part in str(raw).split(",")]
    if len(parts) != 4:
        raise InvalidParameterError(
            f"box must be four comma-separated numbers left,top,width,height; got {raw!r}"
        )

    left, top, width, height = parts
    return RequestedBox(left=left, top=top, width=width, height=height)


class RegionResolver:
    """Clamp requested extraction boxes to the actual image bounds.

    The clamp order is fixed: the offsets are pinned inside the image first
    and the size is then bounded by what remains to the right of and below
    the offset. With both an out-of-range offset and an oversized extent, the
    offset wins.
    """

    def resolve(self, image_width: int, image_height: int, requested: BoxLike) -> Rectangle:
        """
        Resolve ``requested`` against an ``image_width`` x ``image_height`` image.

        Missing or non-finite offsets count as 0; missing or non-finite sizes
        count as the full remaining extent.

        Raises:
            TransformError: Only for an image with no pixels, where no
                rectangle can exist.
        """
        if image_width < 1 or image_height < 1:
            raise TransformError(
                f"Cannot resolve a region on a {image_width}x{image_height} image",
                kind=TransformError.INVALID_GEOMETRY,
            )

        left = clamp(self._offset(requested.left), 0, image_width - 1)
        top = clamp(self._offset(requested.top), 0, image_height - 1)
        width = clamp(self._extent(requested.width, image_width - left), 1, image_width - left)
        height = clamp(self._extent(requested.height, image_height - top), 1, image_height - top)

        return Rectangle(left=left, top=top, width=width, height=height)

    @staticmethod
    def _offset(value: Optional[float]) -> int:
        number = coerce_number(value)
        return 0 if number is None else int(number)

    @staticmethod
    def _extent(value: Optional[float], remaining: int) -> int:
        number = coerce_number(value)
        return remaining if number is None else int(number)
