"""Image processing utilities for the screenshot relay.

Every function here is pure: it takes a Pillow image and returns a new one.
Encoding and decoding live at the edges (``decode_image``/``encode_image``).
"""

import io
from typing import Optional, Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError

from .exceptions import TransformError
from .models import ImageBuffer, Rectangle
from .region import clamp

OUTPUT_FORMAT = "PNG"
OUTPUT_CONTENT_TYPE = "image/png"
MIN_RESIZE_WIDTH = 320
MAX_RESIZE_WIDTH = 4000
PAD_COLOR = (255, 255, 255)

# Modes Pillow can write to PNG without conversion
_PNG_MODES = ("1", "L", "LA", "P", "RGB", "RGBA", "I", "I;16")

DECODE_ERRORS = (
    UnidentifiedImageError,
    Image.DecompressionBombError,
    OSError,
    SyntaxError,
    ValueError,
)


def decode_image(data: bytes) -> Image.Image:
    """
    Decode encoded image bytes into a fully loaded Pillow image.

    Raises:
        TransformError: ``DecodeFailure`` if the bytes are not a readable image.
    """
    if not data:
        raise TransformError("Source image is empty", kind=TransformError.DECODE_FAILURE)

    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except DECODE_ERRORS as exc:
        raise TransformError(
            f"Source bytes are not a decodable image: {exc}",
            kind=TransformError.DECODE_FAILURE,
        ) from exc
    return image


def probe_image(data: bytes) -> Optional[Tuple[int, int, Optional[str]]]:
    """Read ``(width, height, format)`` from the image header, or None."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            return image.width, image.height, image.format
    except DECODE_ERRORS:
        return None


def encode_image(image: Image.Image) -> bytes:
    """Encode ``image`` as PNG."""
    if image.mode not in _PNG_MODES:
        image = image.convert("RGBA")
    output_stream = io.BytesIO()
    image.save(output_stream, format=OUTPUT_FORMAT)
    return output_stream.getvalue()


def to_image_buffer(image: Image.Image) -> ImageBuffer:
    """Encode ``image`` and wrap it with its dimensions."""
    return ImageBuffer(
        data=encode_image(image),
        width=image.width,
        height=image.height,
        format=OUTPUT_FORMAT,
        content_type=OUTPUT_CONTENT_TYPE,
    )


def extract_region(image: Image.Image, rect: Rectangle) -> Image.Image:
    """
    Crop exactly ``rect`` out of ``image``.

    Raises:
        TransformError: ``InvalidGeometry`` if ``rect`` is empty or leaves the image.
    """
    if not rect.fits_within(image.width, image.height):
        raise TransformError(
            f"Region {rect.as_crop_box()} does not fit a {image.width}x{image.height} image",
            kind=TransformError.INVALID_GEOMETRY,
        )
    return image.crop(rect.as_crop_box())


def content_bounding_box(image: Image.Image, threshold: int = 10) -> Optional[Rectangle]:
    """
    Find the box around everything that differs from the background colour.

    The background is the colour of the top-left pixel. A pixel counts as
    content when any channel (alpha included) differs from it by more than
    ``threshold``. Returns None for a uniform image.
    """
    pixels = np.asarray(image.convert("RGBA"), dtype=np.int16)
    background = pixels[0, 0]
    mask = (np.abs(pixels - background).max(axis=2) > threshold)

    rows = np.flatnonzero(mask.any(axis=1))
    cols = np.flatnonzero(mask.any(axis=0))
    if rows.size == 0 or cols.size == 0:
        return None

    top, bottom = int(rows[0]), int(rows[-1]) + 1
    left, right = int(cols[0]), int(cols[-1]) + 1
    return Rectangle(left=left, top=top, width=right - left, height=bottom - top)


def trim_uniform_margins(image: Image.Image, threshold: int = 10) -> Image.Image:
    """Remove uniform background margins from all four edges."""
    box = content_bounding_box(image, threshold)
    if box is None:
        return image.copy()
    return image.crop(box.as_crop_box())


def pad_image(image: Image.Image, padding: int) -> Image.Image:
    """Extend every edge by ``padding`` pixels of opaque white."""
    if padding <= 0:
        return image.copy()

    has_alpha = "A" in image.getbands() or "transparency" in image.info
    mode = "RGBA" if has_alpha else "RGB"
    source = image if image.mode == mode else image.convert(mode)
    fill = PAD_COLOR + (255,) if has_alpha else PAD_COLOR

    canvas = Image.new(mode, (image.width + 2 * padding, image.height + 2 * padding), fill)
    canvas.paste(source, (padding, padding))
    return canvas


def clamp_resize_width(width: int) -> int:
    """Clamp a requested output width into the supported range."""
    return clamp(int(width), MIN_RESIZE_WIDTH, MAX_RESIZE_WIDTH)


def resize_to_width(image: Image.Image, width: int) -> Image.Image:
    """Scale ``image`` to ``width`` (clamped) keeping its aspect ratio."""
    target_width = clamp_resize_width(width)
    target_height = max(1, round(image.height * target_width / image.width))
    if (target_width, target_height) == image.size:
        return image.copy()
    if image.mode not in ("RGB", "RGBA", "L", "LA"):
        image = image.convert("RGBA")
    return image.resize((target_width, target_height), Image.Resampling.LANCZOS)
