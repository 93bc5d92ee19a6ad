import numpy as np
import pytest

from jxldec.alpha import alpha_blend, parse_background
from jxldec.errors import InvalidSpec
from jxldec.formats import PixelFormat, UINT8, FLOAT, LITTLE_ENDIAN
from jxldec.image import BasicInfo, DecodedImage, ExtraChannelInfo, PackedFrame


def _image(color, fmt, planes=None, alpha_ec=False):
    info = BasicInfo(xsize=color.shape[1], ysize=color.shape[0], alpha_bits=8)
    ecs = [ExtraChannelInfo("alpha", 8)] if alpha_ec else []
    return DecodedImage(info=info, frames=[PackedFrame(color, fmt, planes or [])], extra_channels_info=ecs)


def test_parse_background_names():
    assert parse_background("black") == (0.0, 0.0, 0.0)
    assert parse_background("white") == (1.0, 1.0, 1.0)


def test_parse_background_hex():
    r, g, b = parse_background("#ff0080")
    assert r == pytest.approx(1.0)
    assert g == pytest.approx(0.0)
    assert b == pytest.approx(0.502, abs=1e-3)


def test_parse_background_hex_scaling():
    for v in (0, 1, 127, 128, 254, 255):
        rgb = parse_background("#%02x%02x%02x" % (v, 255 - v, v))
        assert all(0.0 <= c <= 1.0 for c in rgb)
        assert round(rgb[0] * 255) == v and round(rgb[1] * 255) == 255 - v


@pytest.mark.parametrize("spec", ["", "red", "#fff", "ff0080", "#gg0000", "#ff00801", "White"])
def test_parse_background_rejects(spec):
    with pytest.raises(InvalidSpec):
        parse_background(spec)


def test_opaque_alpha_keeps_color():
    rng = np.random.default_rng(0)
    px = rng.random((5, 7, 4)).astype("<f4")
    px[..., 3] = 1.0
    img = _image(px.copy(), PixelFormat(4, FLOAT, LITTLE_ENDIAN))
    alpha_blend(img, (0.2, 0.4, 0.6))
    out = img.frames[0]
    assert out.format == PixelFormat(3, FLOAT, LITTLE_ENDIAN)
    np.testing.assert_array_equal(out.color, px[..., :3])
    assert img.info.alpha_bits == 0


def test_transparent_gives_background():
    px = np.random.default_rng(1).random((4, 4, 4)).astype("<f4")
    px[..., 3] = 0.0
    img = _image(px, PixelFormat(4, FLOAT, LITTLE_ENDIAN))
    alpha_blend(img, (0.2, 0.4, 0.6))
    expect = np.broadcast_to(np.asarray([0.2, 0.4, 0.6], dtype=np.float32), (4, 4, 3))
    np.testing.assert_array_equal(img.frames[0].color, expect)


def test_uint8_opaque_unchanged():
    px = np.random.default_rng(2).integers(0, 256, size=(3, 6, 4), dtype=np.uint8)
    px[..., 3] = 255
    img = _image(px.copy(), PixelFormat(4, UINT8))
    alpha_blend(img, parse_background("black"))
    np.testing.assert_array_equal(img.frames[0].color, px[..., :3])


def test_alpha_from_extra_channel_plane():
    color = np.zeros((2, 3, 3), dtype=np.uint8)
    plane = np.zeros((2, 3), dtype=np.uint8)
    img = _image(color, PixelFormat(3, UINT8), planes=[plane], alpha_ec=True)
    alpha_blend(img, parse_background("white"))
    assert img.frames[0].format == PixelFormat(3, UINT8)
    assert (img.frames[0].color == 255).all()
    assert len(img.frames[0].extra_channels) == 1


def test_gray_alpha():
    px = np.zeros((2, 2, 2), dtype=np.uint8)
    px[..., 0] = 10
    px[..., 1] = 0
    img = _image(px, PixelFormat(2, UINT8))
    alpha_blend(img, parse_background("white"))
    assert img.frames[0].color.shape == (2, 2, 1)
    assert (img.frames[0].color == 255).all()


def test_no_alpha_fails():
    img = _image(np.zeros((2, 2, 3), dtype=np.uint8), PixelFormat(3, UINT8))
    with pytest.raises(ValueError):
        alpha_blend(img, (1.0, 1.0, 1.0))


def test_gray_uses_first_background_component():
    px = np.zeros((1, 3, 2), dtype=np.uint8)
    img = _image(px, PixelFormat(2, UINT8))
    alpha_blend(img, parse_background("#ff0000"))
    assert (img.frames[0].color == 255).all()


def test_preview_is_blended():
    fmt = PixelFormat(4, UINT8)
    frame = np.full((2, 2, 4), 255, dtype=np.uint8)
    preview = np.zeros((1, 1, 4), dtype=np.uint8)
    img = _image(frame, fmt)
    img.preview = PackedFrame(preview, fmt)
    alpha_blend(img, parse_background("#204060"))
    assert img.preview.format == PixelFormat(3, UINT8)
    assert img.preview.color.tolist() == [[[32, 64, 96]]]
    assert (img.frames[0].color == 255).all()


def test_preview_without_alpha_fails():
    fmt = PixelFormat(4, UINT8)
    img = _image(np.full((2, 2, 4), 255, dtype=np.uint8), fmt)
    img.preview = PackedFrame(np.zeros((1, 1, 3), dtype=np.uint8), PixelFormat(3, UINT8))
    with pytest.raises(ValueError):
        alpha_blend(img, (0.0, 0.0, 0.0))
    assert img.frames[0].format == fmt
