from __future__ import annotations
import io
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from PIL import Image

from jxldec.errors import EncodeFailure
from jxldec.formats import (
    PixelFormat, pixel_only_formats,
    UINT8, UINT16, FLOAT, BIG_ENDIAN, LITTLE_ENDIAN,
)
from jxldec.image import DecodedImage, EncodedResult, PackedFrame

__all__ = [
    "Encoder",
    "PNGEncoder",
    "APNGEncoder",
    "JPEGEncoder",
    "PNMEncoder",
    "NPYEncoder",
    "MetadataEncoder",
    "encoder_for",
    "codec_from_path",
    "list_encoders",
    "CODEC_UNKNOWN", "CODEC_PNG", "CODEC_JPG", "CODEC_PNM", "CODEC_NPY",
    "CODEC_METADATA",
]

CODEC_UNKNOWN = "unknown"
CODEC_PNG = "png"
CODEC_JPG = "jpg"
CODEC_PNM = "pnm"
CODEC_NPY = "npy"
CODEC_METADATA = "metadata"

_CODEC_BY_EXT = {
    ".png": CODEC_PNG, ".apng": CODEC_PNG,
    ".jpg": CODEC_JPG, ".jpeg": CODEC_JPG,
    ".ppm": CODEC_PNM, ".pgm": CODEC_PNM, ".pnm": CODEC_PNM,
    ".pfm": CODEC_PNM, ".pam": CODEC_PNM, ".pbm": CODEC_PNM,
    ".npy": CODEC_NPY,
    ".exif": CODEC_METADATA, ".xmp": CODEC_METADATA, ".xml": CODEC_METADATA,
    ".jumb": CODEC_METADATA, ".jumbf": CODEC_METADATA,
}


def codec_from_path(path: Optional[str], extension: str = "") -> Tuple[str, str]:
    """
    -> (codec, extension). An explicit extension (from --output_format) wins over
    the suffix of `path`.
    """
    ext = extension.lower()
    if not ext and path:
        ext = Path(path).suffix.lower()
    return _CODEC_BY_EXT.get(ext, CODEC_UNKNOWN), ext


# -----------------------
# helpers
# -----------------------

def _native(arr: np.ndarray) -> np.ndarray:
    if arr.dtype.byteorder in ("=", "|"):
        return arr
    return arr.astype(arr.dtype.newbyteorder("="))


def _to_pil(arr: np.ndarray, cmyk: bool = False) -> Image.Image:
    a = _native(np.ascontiguousarray(arr))
    if a.ndim == 3 and a.shape[-1] == 1:
        a = a[..., 0]
    if cmyk:
        h, w = a.shape[:2]
        return Image.frombytes("CMYK", (w, h), a.astype(np.uint8).tobytes())
    if a.ndim == 2 and a.dtype == np.uint16:
        # "I" keeps 16-bit samples for PNG/PNM writers
        return Image.fromarray(a.astype(np.int32))
    return Image.fromarray(a)


def _save(im: Image.Image, fmt: str, **params) -> bytes:
    buf = io.BytesIO()
    try:
        im.save(buf, format=fmt, **params)
    except (OSError, ValueError, KeyError) as e:
        raise EncodeFailure(f"{fmt} encode failed: {e}") from e
    return buf.getvalue()


# -----------------------
# encoders
# -----------------------

class Encoder:
    """Output codec: capability queries plus encode(DecodedImage) -> EncodedResult."""
    name: str = "none"

    def __init__(self):
        self.options: Dict[str, str] = {}

    def accepted_formats(self) -> List[PixelFormat]:
        return []

    def accepts_cmyk(self) -> bool:
        return False

    def set_option(self, key: str, value: Any) -> None:
        self.options[str(key)] = str(value)

    def encode(self, image: DecodedImage) -> EncodedResult:
        raise NotImplementedError

    def _check(self, image: DecodedImage) -> None:
        if not image.frames:
            raise EncodeFailure(f"{self.name}: image has no frames")
        accepted = self.accepted_formats()
        for f in image.frames:
            if f.format not in accepted:
                raise EncodeFailure(f"{self.name}: unsupported pixel format {f.format}")


class PNGEncoder(Encoder):
    name = "png"

    def accepted_formats(self) -> List[PixelFormat]:
        return [PixelFormat(nc, UINT8) for nc in (1, 2, 3, 4)] + [PixelFormat(1, UINT16, BIG_ENDIAN)]

    def _params(self, image: DecodedImage) -> dict:
        params = {}
        if image.icc:
            params["icc_profile"] = image.icc
        if image.metadata.get("exif"):
            params["exif"] = image.metadata["exif"]
        return params

    def encode(self, image: DecodedImage) -> EncodedResult:
        self._check(image)
        params = self._params(image)
        out = EncodedResult()
        for f in image.frames:
            out.bitstreams.append(_save(_to_pil(f.color), "PNG", **params))
        for k in range(len(image.extra_channels_info)):
            out.extra_channel_bitstreams.append(
                [_save(_to_pil(f.extra_channels[k]), "PNG") for f in image.frames])
        if image.preview is not None:
            out.preview_bitstream = _save(_to_pil(image.preview.color), "PNG")
        return out


class APNGEncoder(PNGEncoder):
    name = "apng"

    def accepted_formats(self) -> List[PixelFormat]:
        return [PixelFormat(nc, UINT8) for nc in (1, 2, 3, 4)]

    def encode(self, image: DecodedImage) -> EncodedResult:
        self._check(image)
        params = self._params(image)
        ims = [_to_pil(f.color) for f in image.frames]
        if len(ims) > 1:
            params.update(save_all=True, append_images=ims[1:], loop=0,
                          duration=[max(1, f.duration_ms) for f in image.frames])
        return EncodedResult(bitstreams=[_save(ims[0], "PNG", **params)])


class JPEGEncoder(Encoder):
    name = "jpeg"

    def accepted_formats(self) -> List[PixelFormat]:
        # 4 channels only carry CMYK; alpha is dropped on encode
        return [PixelFormat(1, UINT8), PixelFormat(3, UINT8), PixelFormat(4, UINT8)]

    def accepts_cmyk(self) -> bool:
        return True

    def quality(self) -> int:
        q = self.options.get("q", "95")
        try:
            qi = int(float(q))
        except ValueError:
            raise EncodeFailure(f"jpeg: invalid quality {q!r}")
        if not 0 <= qi <= 100:
            raise EncodeFailure(f"jpeg: quality {qi} out of range [0, 100]")
        return qi

    def _frame(self, f: PackedFrame) -> Image.Image:
        if f.cmyk:
            return _to_pil(f.color, cmyk=True)
        c = f.color
        if f.has_interleaved_alpha:
            c = c[..., :-1]
        return _to_pil(c)

    def encode(self, image: DecodedImage) -> EncodedResult:
        self._check(image)
        params = {"quality": self.quality()}
        if image.icc:
            params["icc_profile"] = image.icc
        if image.metadata.get("exif"):
            params["exif"] = image.metadata["exif"]
        out = EncodedResult()
        for f in image.frames:
            out.bitstreams.append(_save(self._frame(f), "JPEG", **params))
        if image.preview is not None:
            out.preview_bitstream = _save(self._frame(image.preview), "JPEG", **params)
        return out


class PNMEncoder(Encoder):
    name = "pnm"

    def accepted_formats(self) -> List[PixelFormat]:
        return [PixelFormat(1, UINT8), PixelFormat(3, UINT8), PixelFormat(1, UINT16, BIG_ENDIAN)]

    def encode(self, image: DecodedImage) -> EncodedResult:
        self._check(image)
        out = EncodedResult()
        for f in image.frames:
            out.bitstreams.append(_save(_to_pil(f.color), "PPM"))
        for k in range(len(image.extra_channels_info)):
            out.extra_channel_bitstreams.append(
                [_save(_to_pil(f.extra_channels[k]), "PPM") for f in image.frames])
        if image.preview is not None:
            out.preview_bitstream = _save(_to_pil(image.preview.color), "PPM")
        return out


class NPYEncoder(Encoder):
    """All frames and extra channels in one float32 array: (frames, y, x, color + extra)."""
    name = "npy"

    def accepted_formats(self) -> List[PixelFormat]:
        return [PixelFormat(nc, FLOAT, LITTLE_ENDIAN) for nc in (1, 2, 3, 4)]

    def _metadata(self, image: DecodedImage) -> bytes:
        info = image.info
        doc = {
            "bitdepth": info.bits_per_sample,
            "exponent_bits": info.exponent_bits_per_sample,
            "xsize": info.xsize,
            "ysize": info.ysize,
            "color_channels": image.frames[0].format.num_channels,
            "icc": bool(image.icc),
            "frames": [{"name": f.name, "duration": f.duration_ms} for f in image.frames],
            "extra_channels": [
                {"type": ec.type, "bitdepth": ec.bits_per_sample, "name": ec.name}
                for ec in image.extra_channels_info
            ],
        }
        return json.dumps(doc, indent=2).encode("utf-8")

    def encode(self, image: DecodedImage) -> EncodedResult:
        self._check(image)
        stack = []
        for f in image.frames:
            planes = [f.color.astype("<f4")]
            planes += [ec.astype("<f4")[..., None] for ec in f.extra_channels]
            stack.append(np.concatenate(planes, axis=-1))
        buf = io.BytesIO()
        np.save(buf, np.stack(stack, axis=0), allow_pickle=False)
        return EncodedResult(bitstreams=[buf.getvalue()], metadata=self._metadata(image))


class MetadataEncoder(Encoder):
    """Writes one metadata box (exif, xmp or jumbf) of the decoded image."""

    def __init__(self, kind: str):
        super().__init__()
        self.kind = kind
        self.name = kind

    def accepted_formats(self) -> List[PixelFormat]:
        return pixel_only_formats()

    def encode(self, image: DecodedImage) -> EncodedResult:
        data = image.metadata.get(self.kind, b"")
        if not data:
            raise EncodeFailure(f"image has no {self.kind} metadata")
        return EncodedResult(bitstreams=[bytes(data)])


_ENCODERS = {
    ".png": PNGEncoder,
    ".apng": APNGEncoder,
    ".jpg": JPEGEncoder,
    ".jpeg": JPEGEncoder,
    ".ppm": PNMEncoder,
    ".pgm": PNMEncoder,
    ".pnm": PNMEncoder,
    ".npy": NPYEncoder,
    ".exif": lambda: MetadataEncoder("exif"),
    ".xmp": lambda: MetadataEncoder("xmp"),
    ".xml": lambda: MetadataEncoder("xmp"),
    ".jumb": lambda: MetadataEncoder("jumbf"),
    ".jumbf": lambda: MetadataEncoder("jumbf"),
}


def encoder_for(extension: str) -> Optional[Encoder]:
    make = _ENCODERS.get(str(extension).lower())
    return make() if make is not None else None


def list_encoders() -> str:
    return ", ".join(sorted(e.lstrip(".").upper() for e in _ENCODERS))
