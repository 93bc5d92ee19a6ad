# jxldec/formats.py
"""
Pixel layouts offered to the decode engine.

A PixelFormat is (num_channels, data_type, endianness, align). Two formats are
the same format iff those four fields match; lists built here never hold two
equal entries.

Exports:
- PixelFormat, BitDepth
- add_formats_with_alpha(formats)      -> in place, gray->gray+alpha, rgb->rgba
- pixel_only_formats()                 -> float formats for decodes with no encoder
- build_accepted_formats(encoder, alpha_blend)
- cmyk_color_space(accepts_cmyk)
- bit_depth_from_flag(bits_per_sample)
- select_format(...)                   -> the layout a frame is actually packed in
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from jxldec.errors import DecodeFailure

__all__ = [
    "UINT8", "UINT16", "FLOAT16", "FLOAT",
    "NATIVE_ENDIAN", "LITTLE_ENDIAN", "BIG_ENDIAN",
    "BIT_DEPTH_FROM_PIXEL_FORMAT", "BIT_DEPTH_FROM_CODESTREAM", "BIT_DEPTH_CUSTOM",
    "PixelFormat", "BitDepth",
    "add_formats_with_alpha", "pixel_only_formats", "build_accepted_formats",
    "cmyk_color_space", "bit_depth_from_flag", "select_format",
    "CMYK_WORKING_SPACE",
]

UINT8 = "uint8"
UINT16 = "uint16"
FLOAT16 = "float16"
FLOAT = "float"

NATIVE_ENDIAN = "native"
LITTLE_ENDIAN = "little"
BIG_ENDIAN = "big"

BIT_DEPTH_FROM_PIXEL_FORMAT = "from_pixel_format"
BIT_DEPTH_FROM_CODESTREAM = "from_codestream"
BIT_DEPTH_CUSTOM = "custom"

CMYK_WORKING_SPACE = "sRGB"

_NP_BASE = {UINT8: "u1", UINT16: "u2", FLOAT16: "f2", FLOAT: "f4"}
_NP_ORDER = {NATIVE_ENDIAN: "=", LITTLE_ENDIAN: "<", BIG_ENDIAN: ">"}


@dataclass(frozen=True)
class PixelFormat:
    num_channels: int
    data_type: str = UINT8
    endianness: str = NATIVE_ENDIAN
    align: int = 0

    def dtype(self) -> np.dtype:
        if self.data_type == UINT8:
            return np.dtype(np.uint8)
        return np.dtype(_NP_ORDER[self.endianness] + _NP_BASE[self.data_type])

    @property
    def is_float(self) -> bool:
        return self.data_type in (FLOAT16, FLOAT)

    @property
    def bytes_per_sample(self) -> int:
        return self.dtype().itemsize

    @property
    def max_value(self) -> float:
        if self.data_type == UINT8:
            return 255.0
        if self.data_type == UINT16:
            return 65535.0
        return 1.0

    def with_channels(self, n: int) -> "PixelFormat":
        return PixelFormat(int(n), self.data_type, self.endianness, self.align)


@dataclass(frozen=True)
class BitDepth:
    type: str = BIT_DEPTH_FROM_PIXEL_FORMAT
    bits_per_sample: int = 0


def _append_unique(formats: List[PixelFormat], fmt: PixelFormat) -> None:
    for f in formats:
        if f == fmt:
            return
    formats.append(fmt)


def add_formats_with_alpha(formats: List[PixelFormat]) -> List[PixelFormat]:
    """Append a +1 channel variant of every 1 or 3 channel format, skipping duplicates."""
    n = len(formats)
    for i in range(n):
        f = formats[i]
        if f.num_channels in (1, 3):
            _append_unique(formats, f.with_channels(f.num_channels + 1))
    return formats


def pixel_only_formats() -> List[PixelFormat]:
    out: List[PixelFormat] = []
    for nc in (1, 2, 3, 4):
        for endianness in (BIG_ENDIAN, LITTLE_ENDIAN):
            out.append(PixelFormat(nc, FLOAT, endianness, 0))
    return out


def build_accepted_formats(encoder, alpha_blend: bool) -> List[PixelFormat]:
    if encoder is None:
        return pixel_only_formats()
    formats: List[PixelFormat] = []
    for f in encoder.accepted_formats():
        _append_unique(formats, f)
    if alpha_blend:
        add_formats_with_alpha(formats)
    return formats


def cmyk_color_space(accepts_cmyk: bool) -> Optional[str]:
    """Working space CMYK sources are converted to when the encoder cannot take CMYK."""
    return None if accepts_cmyk else CMYK_WORKING_SPACE


def bit_depth_from_flag(bits_per_sample: int) -> BitDepth:
    b = int(bits_per_sample)
    if b == 0:
        return BitDepth(BIT_DEPTH_FROM_CODESTREAM)
    if b > 0:
        return BitDepth(BIT_DEPTH_CUSTOM, b)
    return BitDepth(BIT_DEPTH_FROM_PIXEL_FORMAT)


# -----------------------
# format selection (engine side)
# -----------------------

def _type_preference(source_bits: int, is_float: bool, bit_depth: BitDepth) -> List[str]:
    if bit_depth.type == BIT_DEPTH_CUSTOM:
        bits = bit_depth.bits_per_sample
    else:
        bits = source_bits
    if is_float and bit_depth.type != BIT_DEPTH_CUSTOM:
        return [FLOAT, FLOAT16, UINT16, UINT8]
    if bits > 8:
        return [UINT16, FLOAT, FLOAT16, UINT8]
    return [UINT8, UINT16, FLOAT, FLOAT16]


def _pick(candidates: Sequence[PixelFormat], prefs: List[str]) -> Optional[PixelFormat]:
    for t in prefs:
        for f in candidates:
            if f.data_type == t:
                return f
    return None


def select_format(accepted: Sequence[PixelFormat], num_color_channels: int, has_alpha: bool,
                  source_bits: int = 8, is_float: bool = False,
                  bit_depth: BitDepth = BitDepth()) -> PixelFormat:
    """
    Choose the layout one frame is packed in.
    Channel counts are tried in order: exact (color + alpha), without alpha,
    gray expanded to RGB (with, then without alpha).
    """
    if not accepted:
        raise DecodeFailure("no accepted pixel formats")
    prefs = _type_preference(source_bits, is_float, bit_depth)
    counts = [num_color_channels + (1 if has_alpha else 0)]
    if has_alpha:
        counts.append(num_color_channels)
    if num_color_channels == 1:
        if has_alpha:
            counts.append(4)
        counts.append(3)
    for nc in counts:
        fmt = _pick([f for f in accepted if f.num_channels == nc], prefs)
        if fmt is not None:
            return fmt
    raise DecodeFailure(
        f"none of the accepted pixel formats fits a {num_color_channels}-channel image"
        f"{' with alpha' if has_alpha else ''}")
