# jxldec/image.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from jxldec.formats import PixelFormat

__all__ = [
    "BasicInfo", "ExtraChannelInfo", "PackedFrame", "DecodedImage", "EncodedResult",
    "EC_ALPHA",
]

EC_ALPHA = "alpha"


@dataclass
class BasicInfo:
    xsize: int = 0
    ysize: int = 0
    bits_per_sample: int = 8
    exponent_bits_per_sample: int = 0
    num_color_channels: int = 3
    alpha_bits: int = 0
    num_extra_channels: int = 0
    have_animation: bool = False
    orig_format: str = ""


@dataclass
class ExtraChannelInfo:
    type: str = EC_ALPHA
    bits_per_sample: int = 8
    name: str = ""


@dataclass
class PackedFrame:
    """One frame: interleaved color (H x W x C) plus one H x W plane per extra channel."""
    color: np.ndarray
    format: PixelFormat
    extra_channels: List[np.ndarray] = field(default_factory=list)
    name: str = ""
    duration_ms: int = 0
    cmyk: bool = False

    @property
    def xsize(self) -> int:
        return int(self.color.shape[1])

    @property
    def ysize(self) -> int:
        return int(self.color.shape[0])

    @property
    def has_interleaved_alpha(self) -> bool:
        return not self.cmyk and self.format.num_channels in (2, 4)


@dataclass
class DecodedImage:
    info: BasicInfo
    frames: List[PackedFrame] = field(default_factory=list)
    extra_channels_info: List[ExtraChannelInfo] = field(default_factory=list)
    preview: Optional[PackedFrame] = None
    icc: bytes = b""
    orig_icc: bytes = b""
    metadata: Dict[str, bytes] = field(default_factory=dict)

    def alpha_index(self) -> Optional[int]:
        for i, ec in enumerate(self.extra_channels_info):
            if ec.type == EC_ALPHA:
                return i
        return None


@dataclass
class EncodedResult:
    bitstreams: List[bytes] = field(default_factory=list)
    extra_channel_bitstreams: List[List[bytes]] = field(default_factory=list)
    preview_bitstream: bytes = b""
    metadata: bytes = b""
