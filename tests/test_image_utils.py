"""Tests for image_utils.py pure image functions."""

import io

import pytest
from PIL import Image

from screenshot_relay.core.exceptions import TransformError
from screenshot_relay.core.image_utils import (
    MAX_RESIZE_WIDTH,
    MIN_RESIZE_WIDTH,
    clamp_resize_width,
    content_bounding_box,
    decode_image,
    encode_image,
    extract_region,
    pad_image,
    probe_image,
    resize_to_width,
    to_image_buffer,
    trim_uniform_margins,
)
from screenshot_relay.core.models import Rectangle
from screenshot_relay.testing.fakes import create_screenshot_image, create_test_image


def _framed_image(size=(200, 120), box=(40, 30, 100, 50), color=(0, 0, 0)):
    """White image with a solid block at ``box`` (left, top, width, height)."""
    image = Image.new("RGB", size, (255, 255, 255))
    left, top, width, height = box
    image.paste(Image.new("RGB", (width, height), color), (left, top))
    return image


class TestDecodeImage:
    def test_decode_png(self):
        image = decode_image(create_test_image(30, 20))

        assert image.size == (30, 20)

    def test_decode_jpeg(self):
        image = decode_image(create_test_image(64, 48, format="JPEG"))

        assert image.size == (64, 48)
        assert image.format == "JPEG"

    @pytest.mark.parametrize("data", [b"", b"not an image", b"\x89PNG\r\n\x1a\n" + b"\x00" * 10])
    def test_decode_invalid_bytes_raises_decode_failure(self, data):
        with pytest.raises(TransformError) as excinfo:
            decode_image(data)

        assert excinfo.value.kind == TransformError.DECODE_FAILURE
        assert excinfo.value.family == "TransformError"


class TestProbeImage:
    def test_probe_reads_header(self):
        assert probe_image(create_test_image(12, 34)) == (12, 34, "PNG")

    def test_probe_returns_none_for_garbage(self):
        assert probe_image(b"<html>nope</html>") is None


class TestEncodeImage:
    def test_encode_is_png(self):
        data = encode_image(Image.new("RGB", (5, 5)))

        assert data.startswith(b"\x89PNG")

    def test_encode_converts_unsupported_mode(self):
        data = encode_image(Image.new("CMYK", (5, 5)))

        assert Image.open(io.BytesIO(data)).mode == "RGBA"

    def test_encode_keeps_alpha(self):
        data = encode_image(Image.new("RGBA", (5, 5), (10, 20, 30, 40)))

        assert Image.open(io.BytesIO(data)).getpixel((0, 0)) == (10, 20, 30, 40)

    def test_to_image_buffer_metadata(self):
        buffer = to_image_buffer(Image.new("RGB", (7, 9)))

        assert (buffer.width, buffer.height) == (7, 9)
        assert buffer.format == "PNG"
        assert buffer.content_type == "image/png"


class TestExtractRegion:
    def test_extract_exact_rectangle(self):
        image = Image.new("RGB", (1280, 800))

        region = extract_region(image, Rectangle(left=0, top=50, width=1270, height=250))

        assert region.size == (1270, 250)

    def test_extract_keeps_pixels(self):
        image = _framed_image()

        region = extract_region(image, Rectangle(left=40, top=30, width=100, height=50))

        assert region.getpixel((0, 0)) == (0, 0, 0)
        assert region.getpixel((99, 49)) == (0, 0, 0)

    @pytest.mark.parametrize(
        "rect",
        [
            Rectangle(left=0, top=0, width=0, height=10),
            Rectangle(left=5, top=5, width=100, height=1),
            Rectangle(left=0, top=9, width=1, height=2),
        ],
    )
    def test_extract_out_of_bounds_is_invalid_geometry(self, rect):
        with pytest.raises(TransformError) as excinfo:
            extract_region(Image.new("RGB", (10, 10)), rect)

        assert excinfo.value.kind == TransformError.INVALID_GEOMETRY


class TestTrim:
    def test_content_bounding_box(self):
        box = content_bounding_box(_framed_image(box=(40, 30, 100, 50)))

        assert box == Rectangle(left=40, top=30, width=100, height=50)

    def test_uniform_image_has_no_box(self):
        assert content_bounding_box(Image.new("RGB", (20, 20), (9, 9, 9))) is None

    def test_trim_removes_margins(self):
        trimmed = trim_uniform_margins(_framed_image(box=(40, 30, 100, 50)))

        assert trimmed.size == (100, 50)

    def test_trim_uniform_image_unchanged(self):
        image = Image.new("RGB", (20, 20), (255, 255, 255))

        trimmed = trim_uniform_margins(image)

        assert trimmed.size == (20, 20)
        assert trimmed is not image

    def test_trim_ignores_differences_within_threshold(self):
        image = _framed_image(box=(40, 30, 100, 50), color=(250, 250, 250))

        assert trim_uniform_margins(image, threshold=10).size == image.size

    def test_trim_keeps_faint_gridline_above_threshold(self):
        image = _framed_image(box=(40, 30, 100, 50), color=(0, 0, 0))
        # A light gridline one pixel outside the content, still above threshold
        image.paste(Image.new("RGB", (100, 1), (230, 230, 230)), (40, 29))

        trimmed = trim_uniform_margins(image, threshold=10)

        assert trimmed.size == (100, 51)

    def test_trim_screenshot_table(self):
        data = create_screenshot_image(1280, 800, content_box=(100, 150, 500, 300))

        trimmed = trim_uniform_margins(decode_image(data))

        assert trimmed.size == (500, 300)

    def test_trim_transparent_margins(self):
        image = Image.new("RGBA", (50, 40), (0, 0, 0, 0))
        image.paste(Image.new("RGBA", (10, 5), (255, 0, 0, 255)), (20, 10))

        assert trim_uniform_margins(image).size == (10, 5)


class TestPad:
    def test_pad_adds_padding_on_every_edge(self):
        padded = pad_image(Image.new("RGB", (100, 50), (0, 0, 0)), 8)

        assert padded.size == (116, 66)
        assert padded.getpixel((0, 0)) == (255, 255, 255)
        assert padded.getpixel((115, 65)) == (255, 255, 255)
        assert padded.getpixel((8, 8)) == (0, 0, 0)
        assert padded.getpixel((107, 57)) == (0, 0, 0)

    def test_pad_zero_is_identity_size(self):
        assert pad_image(Image.new("RGB", (10, 10)), 0).size == (10, 10)

    def test_pad_alpha_image_fills_opaque_white(self):
        padded = pad_image(Image.new("RGBA", (4, 4), (1, 2, 3, 0)), 2)

        assert padded.mode == "RGBA"
        assert padded.getpixel((0, 0)) == (255, 255, 255, 255)
        assert padded.getpixel((3, 3)) == (1, 2, 3, 0)

    def test_pad_grayscale_image(self):
        padded = pad_image(Image.new("L", (4, 4), 0), 1)

        assert padded.mode == "RGB"
        assert padded.size == (6, 6)


class TestResize:
    @pytest.mark.parametrize(
        "requested,expected",
        [(50, MIN_RESIZE_WIDTH), (320, 320), (1000, 1000), (4000, 4000), (9000, MAX_RESIZE_WIDTH)],
    )
    def test_clamp_resize_width(self, requested, expected):
        assert clamp_resize_width(requested) == expected

    def test_resize_preserves_aspect_ratio(self):
        resized = resize_to_width(Image.new("RGB", (1000, 500)), 600)

        assert resized.size == (600, 300)

    def test_resize_below_minimum_clamped(self):
        resized = resize_to_width(Image.new("RGB", (1000, 500)), 50)

        assert resized.size == (320, 160)

    def test_resize_above_maximum_clamped(self):
        resized = resize_to_width(Image.new("RGB", (400, 10)), 9000)

        assert resized.size == (4000, 100)

    def test_resize_keeps_at_least_one_pixel_high(self):
        resized = resize_to_width(Image.new("RGB", (4000, 1)), 320)

        assert resized.size == (320, 1)
