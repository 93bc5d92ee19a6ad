# jxldec/engine.py
"""
Decode engine: compressed bytes -> legacy bitstream or packed pixels.

The orchestrator only talks to the DecodeEngine interface. PillowEngine is the
bundled implementation and decodes whatever the installed Pillow can open
(JPEG XL too, when a Pillow plugin for it is registered).

Legacy reconstruction: a payload that already is a JPEG bitstream is returned
byte for byte. Anything else fails without producing bytes.

Option support in PillowEngine:
  allow_partial_input   -> ImageFile.LOAD_TRUNCATED_IMAGES for the call
  max_downsampling      -> JPEG draft mode (DCT scaling)
  color_space           -> sRGB targets only, via ImageCms
  color_space_for_cmyk  -> CMYK sources converted to RGB
  display_nits, render_spotcolors, coalescing -> accepted, no effect
    (Pillow hands out coalesced frames and has no spot color planes)
"""
from __future__ import annotations
import io
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
from PIL import Image, ImageCms, ImageFile, ImageSequence

from jxldec.errors import DecodeFailure
from jxldec.formats import (
    PixelFormat, BitDepth, select_format,
    BIT_DEPTH_CUSTOM, BIT_DEPTH_FROM_CODESTREAM,
)
from jxldec.image import (
    BasicInfo, DecodedImage, ExtraChannelInfo, PackedFrame, EC_ALPHA,
)
from jxldec.io import from_unit_float

__all__ = ["DecodeOptions", "DecodeEngine", "PillowEngine", "SRGB_NAMES"]

SRGB_NAMES = {"srgb", "rgb_d65_srg_per_srg", "rgb_d65_srg_rel_srg",
              "rgb_d65_srg_abs_srg", "rgb_d65_srg_sat_srg"}

_INTENTS = {
    "per": ImageCms.Intent.PERCEPTUAL,
    "rel": ImageCms.Intent.RELATIVE_COLORIMETRIC,
    "abs": ImageCms.Intent.ABSOLUTE_COLORIMETRIC,
    "sat": ImageCms.Intent.SATURATION,
}


@dataclass
class DecodeOptions:
    color_space: str = ""
    color_space_for_cmyk: Optional[str] = None
    display_nits: float = 0.0
    max_downsampling: int = 0
    render_spotcolors: bool = True
    coalescing: bool = True
    allow_partial_input: bool = False
    bit_depth: BitDepth = field(default_factory=BitDepth)


class DecodeEngine:
    """Abstract engine interface."""

    def reconstruct_legacy(self, data: bytes, options: DecodeOptions,
                           runner=None) -> Tuple[bytes, BasicInfo]:
        raise NotImplementedError

    def decode_pixels(self, data: bytes, options: DecodeOptions,
                      accepted_formats: Sequence[PixelFormat],
                      runner=None) -> Tuple[DecodedImage, int]:
        raise NotImplementedError


@dataclass
class _RawFrame:
    color: np.ndarray              # float32, H x W x (1|3|4)
    alpha: Optional[np.ndarray]    # float32, H x W
    cmyk: bool
    duration_ms: int


@contextmanager
def _truncated_ok(flag: bool):
    old = ImageFile.LOAD_TRUNCATED_IMAGES
    ImageFile.LOAD_TRUNCATED_IMAGES = bool(flag) or old
    try:
        yield
    finally:
        ImageFile.LOAD_TRUNCATED_IMAGES = old


def _source_depth(mode: str) -> Tuple[int, int, bool]:
    """-> (bits, exponent bits, is_float) of a Pillow mode."""
    if mode == "F":
        return 32, 8, True
    if mode.startswith("I"):
        return 16, 0, False
    return 8, 0, False


def _srgb_bytes() -> bytes:
    return ImageCms.ImageCmsProfile(ImageCms.createProfile("sRGB")).tobytes()


def _intent(color_space: str):
    parts = color_space.lower().split("_")
    for p in parts:
        if p in _INTENTS:
            return _INTENTS[p]
    return ImageCms.Intent.PERCEPTUAL


def _to_srgb(fr: Image.Image, icc: bytes, intent) -> Image.Image:
    src = ImageCms.ImageCmsProfile(io.BytesIO(icc))
    dst = ImageCms.createProfile("sRGB")
    out_mode = "RGBA" if fr.mode == "RGBA" else "RGB"
    try:
        return ImageCms.profileToProfile(fr, src, dst, renderingIntent=intent, outputMode=out_mode)
    except ImageCms.PyCMSError as e:
        raise DecodeFailure(f"color conversion failed: {e}") from e


def _normalize_mode(fr: Image.Image) -> Image.Image:
    mode = fr.mode
    if mode == "P":
        return fr.convert("RGBA" if "transparency" in fr.info else "RGB")
    if mode == "PA":
        return fr.convert("RGBA")
    if mode == "1":
        return fr.convert("L")
    if mode == "La":
        return fr.convert("LA")
    if mode == "RGBa":
        return fr.convert("RGBA")
    if mode in ("L", "RGB") and "transparency" in fr.info:
        # tRNS colour key becomes a real alpha channel
        return fr.convert("LA" if mode == "L" else "RGBA")
    if mode in ("L", "LA", "RGB", "RGBA", "CMYK", "F") or mode.startswith("I"):
        return fr
    return fr.convert("RGB")


def _unify_modes(frames: List[Image.Image]) -> List[Image.Image]:
    """Frames of one image must share a mode (GIF frames after the first often differ)."""
    modes = {fr.mode for fr in frames}
    if len(modes) <= 1:
        return frames
    alpha = any(m in ("LA", "RGBA") for m in modes)
    gray = all(m in ("L", "LA") for m in modes)
    if gray:
        target = "LA" if alpha else "L"
    else:
        target = "RGBA" if alpha else "RGB"
    return [fr if fr.mode == target else fr.convert(target) for fr in frames]


def _split(fr: Image.Image, duration_ms: int) -> _RawFrame:
    mode = fr.mode
    if mode.startswith("I"):
        a = np.asarray(fr).astype(np.float32) / 65535.0
        return _RawFrame(np.clip(a, 0.0, 1.0)[..., None], None, False, duration_ms)
    if mode == "F":
        return _RawFrame(np.asarray(fr, dtype=np.float32)[..., None], None, False, duration_ms)
    a = np.asarray(fr).astype(np.float32) / 255.0
    if a.ndim == 2:
        a = a[..., None]
    if mode in ("LA", "RGBA"):
        return _RawFrame(a[..., :-1], a[..., -1], False, duration_ms)
    return _RawFrame(a, None, mode == "CMYK", duration_ms)


def _pack(raw: _RawFrame, fmt: PixelFormat, bits: Optional[int]) -> PackedFrame:
    color = raw.color
    with_alpha = fmt.num_channels in (2, 4) and not raw.cmyk
    if color.shape[-1] == 1 and fmt.num_channels >= 3:
        color = np.repeat(color, 3, axis=-1)
    if with_alpha:
        color = np.concatenate([color, raw.alpha[..., None]], axis=-1)
    extra = [] if raw.alpha is None else [from_unit_float(raw.alpha, fmt, bits)]
    return PackedFrame(
        color=from_unit_float(color, fmt, bits),
        format=fmt,
        extra_channels=extra,
        duration_ms=raw.duration_ms,
        cmyk=raw.cmyk,
    )


class PillowEngine(DecodeEngine):

    def _open(self, data: bytes) -> Image.Image:
        try:
            return Image.open(io.BytesIO(data))
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            raise DecodeFailure(f"couldn't decode input: {e}") from e

    @staticmethod
    def _basic_info(im: Image.Image) -> BasicInfo:
        bits, exp_bits, _ = _source_depth(im.mode)
        has_alpha = im.mode in ("LA", "La", "PA", "RGBA", "RGBa")
        gray = im.mode in ("1", "L", "LA", "La", "F") or im.mode.startswith("I")
        return BasicInfo(
            xsize=im.width,
            ysize=im.height,
            bits_per_sample=bits,
            exponent_bits_per_sample=exp_bits,
            num_color_channels=4 if im.mode == "CMYK" else (1 if gray else 3),
            alpha_bits=bits if has_alpha else 0,
            num_extra_channels=1 if has_alpha else 0,
            have_animation=getattr(im, "n_frames", 1) > 1,
            orig_format=im.format or "",
        )

    def reconstruct_legacy(self, data: bytes, options: DecodeOptions,
                           runner=None) -> Tuple[bytes, BasicInfo]:
        with _truncated_ok(options.allow_partial_input):
            im = self._open(data)
            if im.format != "JPEG":
                raise DecodeFailure(f"no JPEG bitstream to reconstruct in {im.format} input")
            try:
                im.load()
            except (OSError, ValueError) as e:
                raise DecodeFailure(f"couldn't decode input: {e}") from e
        return bytes(data), self._basic_info(im)

    def _read_frames(self, im: Image.Image, options: DecodeOptions) -> Tuple[List[Image.Image], List[int]]:
        ds = int(options.max_downsampling or 0)
        if ds > 1 and im.format == "JPEG":
            im.draft(im.mode, (max(1, im.width // ds), max(1, im.height // ds)))
        frames, durations = [], []
        try:
            for fr in ImageSequence.Iterator(im):
                fr.load()
                frames.append(fr.copy())
                durations.append(int(fr.info.get("duration", 0) or 0))
        except (OSError, ValueError, EOFError) as e:
            raise DecodeFailure(f"couldn't decode input: {e}") from e
        if not frames:
            raise DecodeFailure("input has no frames")
        return frames, durations

    def decode_pixels(self, data: bytes, options: DecodeOptions,
                      accepted_formats: Sequence[PixelFormat],
                      runner=None) -> Tuple[DecodedImage, int]:
        with _truncated_ok(options.allow_partial_input):
            im = self._open(data)
            frames, durations = self._read_frames(im, options)

        orig_icc = bytes(im.info.get("icc_profile") or b"")
        icc = orig_icc
        cs = (options.color_space or "").strip()
        to_srgb = False
        if cs:
            if cs.lower() not in SRGB_NAMES:
                raise DecodeFailure(f"unsupported color space {cs}")
            to_srgb = True
        frames = _unify_modes([_normalize_mode(fr) for fr in frames])
        out = []
        for fr in frames:
            if fr.mode == "CMYK" and options.color_space_for_cmyk:
                fr = _to_srgb(fr, orig_icc, _intent(cs)) if orig_icc else fr.convert("RGB")
                icc = _srgb_bytes() if orig_icc else b""
            elif to_srgb and orig_icc and fr.mode in ("RGB", "RGBA"):
                fr = _to_srgb(fr, orig_icc, _intent(cs))
                icc = _srgb_bytes()
            out.append(fr)
        frames = out

        info = self._basic_info(frames[0])
        info.orig_format = im.format or ""
        info.have_animation = len(frames) > 1
        bits, _, is_float = _source_depth(frames[0].mode)
        has_alpha = frames[0].mode in ("LA", "RGBA")
        ncolor = 1 if frames[0].mode in ("L", "LA", "F") or frames[0].mode.startswith("I") else 3
        cmyk = frames[0].mode == "CMYK"
        fmt = select_format(accepted_formats, 4 if cmyk else ncolor, has_alpha,
                            source_bits=bits, is_float=is_float, bit_depth=options.bit_depth)

        pack_bits = None
        if options.bit_depth.type == BIT_DEPTH_CUSTOM:
            pack_bits = options.bit_depth.bits_per_sample
            info.bits_per_sample = pack_bits
        elif options.bit_depth.type == BIT_DEPTH_FROM_CODESTREAM:
            pack_bits = bits if not is_float else None
        elif not fmt.is_float:
            info.bits_per_sample = 8 * fmt.bytes_per_sample
        if has_alpha:
            info.alpha_bits = info.bits_per_sample

        raws = [_split(fr, d) for fr, d in zip(frames, durations)]
        if runner is not None:
            packed = runner.map(lambda r: _pack(r, fmt, pack_bits), raws)
        else:
            packed = [_pack(r, fmt, pack_bits) for r in raws]

        metadata = {}
        exif = im.info.get("exif")
        if exif:
            metadata["exif"] = bytes(exif)
        xmp = im.info.get("xmp") or im.info.get("XML:com.adobe.xmp")
        if xmp:
            metadata["xmp"] = xmp.encode("utf-8") if isinstance(xmp, str) else bytes(xmp)

        image = DecodedImage(
            info=info,
            frames=packed,
            extra_channels_info=[ExtraChannelInfo(EC_ALPHA, info.alpha_bits)] if has_alpha else [],
            icc=icc,
            orig_icc=orig_icc,
            metadata=metadata,
        )
        return image, len(data)
