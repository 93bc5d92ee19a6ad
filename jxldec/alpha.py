# jxldec/alpha.py
from __future__ import annotations
from typing import Tuple

import numpy as np

from jxldec.errors import InvalidSpec
from jxldec.image import DecodedImage, PackedFrame
from jxldec.io import to_unit_float, from_unit_float

__all__ = ["parse_background", "alpha_blend"]

_HEX = set("0123456789abcdefABCDEF")


def parse_background(spec: str) -> Tuple[float, float, float]:
    """'black', 'white' or '#RRGGBB' -> (r, g, b) in [0, 1]."""
    if spec == "black":
        return (0.0, 0.0, 0.0)
    if spec == "white":
        return (1.0, 1.0, 1.0)
    if len(spec) != 7 or spec[0] != "#" or not set(spec[1:]) <= _HEX:
        raise InvalidSpec(f"Invalid background color {spec}")
    color = int(spec[1:], 16)
    return (((color >> 16) & 0xFF) / 255.0,
            ((color >> 8) & 0xFF) / 255.0,
            (color & 0xFF) / 255.0)


def _blend_frame(frame: PackedFrame, background: np.ndarray, alpha_ec: int | None) -> PackedFrame:
    fmt = frame.format
    px = to_unit_float(frame.color, fmt)
    if frame.has_interleaved_alpha:
        color, a = px[..., :-1], px[..., -1:]
        out_fmt = fmt.with_channels(fmt.num_channels - 1)
    else:
        plane = frame.extra_channels[alpha_ec]
        a = to_unit_float(plane, fmt)[..., None]
        color = px
        out_fmt = fmt
    bg = background
    if color.shape[-1] == 1:
        # gray takes the first background component
        bg = background[:1]
    a = np.clip(a, 0.0, 1.0)
    blended = color * a + bg * (1.0 - a)
    return PackedFrame(
        color=from_unit_float(blended, out_fmt),
        format=out_fmt,
        extra_channels=frame.extra_channels,
        name=frame.name,
        duration_ms=frame.duration_ms,
    )


def alpha_blend(image: DecodedImage, background) -> DecodedImage:
    """
    Composite every frame (and the preview) over `background`:
      out = color * alpha + background * (1 - alpha)
    Interleaved alpha is removed from the color buffer; extra channel planes stay.
    Raises ValueError if the image carries no alpha at all.
    """
    bg = np.asarray(background, dtype=np.float32).reshape(3)
    alpha_ec = image.alpha_index()
    frames = list(image.frames)
    if image.preview is not None:
        frames.append(image.preview)
    if not frames:
        raise ValueError("image has no frames")
    for f in frames:
        if not f.has_interleaved_alpha and (alpha_ec is None or alpha_ec >= len(f.extra_channels)):
            raise ValueError("image has no alpha channel")

    image.frames = [_blend_frame(f, bg, alpha_ec) for f in image.frames]
    if image.preview is not None:
        image.preview = _blend_frame(image.preview, bg, alpha_ec)
    image.info.alpha_bits = 0
    return image
