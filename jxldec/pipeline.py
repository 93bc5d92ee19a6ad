# jxldec/pipeline.py
"""
Decode orchestration.

Path selection happens once, before any decode call:
  JPEG output without --pixels_to_jpeg / --jpeg_quality -> reconstruct
  anything else                                         -> pixels

  reconstruct --ok--> write legacy bitstream
       | fails before any bytes were produced
       v
  pixels --ok--> [alpha blend] -> encode -> fan-out writes
       | fails
       v
     fatal

Reconstruction is never attempted again once the pixel path has started.
"""
from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional, Sequence, Tuple

from tqdm.auto import tqdm

from jxldec.alpha import alpha_blend, parse_background
from jxldec.config import DecodeRequest
from jxldec.encoders import Encoder, codec_from_path, encoder_for, CODEC_JPG, CODEC_PNM
from jxldec.engine import DecodeEngine, DecodeOptions, PillowEngine
from jxldec.errors import DecodeFailure, EncodeFailure, UsageError
from jxldec.formats import PixelFormat, bit_depth_from_flag, build_accepted_formats, cmyk_color_space
from jxldec.image import DecodedImage, EncodedResult
from jxldec.io import write_file
from jxldec.output import write_encoded
from jxldec.runner import ThreadRunner, resolve_num_threads
from jxldec.stats import SpeedStats
from jxldec.utils import Printer, now_s, progress_disabled

__all__ = [
    "PATH_RECONSTRUCT", "PATH_PIXELS",
    "DecodeOutcome", "OutputTarget",
    "output_target", "apply_codec_defaults", "decode_to_pixels_requested",
    "decode_options", "reconstruct_legacy", "decode_pixels", "Decompressor",
]

PATH_RECONSTRUCT = "reconstruct"
PATH_PIXELS = "pixels"


@dataclass
class OutputTarget:
    filename: str = ""     # empty: nothing is written
    extension: str = ""
    codec: str = ""


@dataclass
class DecodeOutcome:
    path: str = PATH_PIXELS
    fell_back: bool = False
    legacy_bytes: bytes = b""
    image: Optional[DecodedImage] = None
    encoded: Optional[EncodedResult] = None
    decoded_bytes: int = 0
    written: List[str] = field(default_factory=list)


def output_target(req: DecodeRequest) -> OutputTarget:
    extension = "." + req.output_format if req.output_format else ""
    if req.file_out is None or req.disable_output:
        return OutputTarget("", extension, "")
    codec, extension = codec_from_path(req.file_out, extension)
    return OutputTarget(req.file_out, extension, codec)


def apply_codec_defaults(req: DecodeRequest, target: OutputTarget) -> DecodeRequest:
    """PNM output keeps the source bit depth unless a JPEG quality was given."""
    if target.codec == CODEC_PNM and target.extension != ".pfm" and not req.jpeg_quality_set:
        return replace(req, bits_per_sample=0)
    return req


def decode_to_pixels_requested(req: DecodeRequest, codec: str) -> bool:
    if req.pixels_to_jpeg or req.jpeg_quality_set:
        return True
    return codec != CODEC_JPG


def decode_options(req: DecodeRequest, accepts_cmyk: bool = False) -> DecodeOptions:
    return DecodeOptions(
        color_space=req.color_space,
        color_space_for_cmyk=cmyk_color_space(accepts_cmyk),
        display_nits=req.display_nits,
        max_downsampling=req.downsampling,
        render_spotcolors=req.render_spotcolors,
        coalescing=req.coalescing,
        allow_partial_input=req.allow_partial_files,
        bit_depth=bit_depth_from_flag(req.bits_per_sample),
    )


def reconstruct_legacy(req: DecodeRequest, data: bytes, engine: DecodeEngine,
                       runner=None, stats: Optional[SpeedStats] = None) -> bytes:
    """One timed reconstruction call; DecodeFailure propagates."""
    options = DecodeOptions(allow_partial_input=req.allow_partial_files)
    t0 = now_s()
    legacy, info = engine.reconstruct_legacy(data, options, runner)
    t1 = now_s()
    if stats is not None:
        stats.notify_elapsed(t1 - t0)
        stats.set_image_size(info.xsize, info.ysize)
        stats.set_file_size(len(legacy))
    return legacy


def decode_pixels(req: DecodeRequest, data: bytes, engine: DecodeEngine,
                  accepted_formats: Sequence[PixelFormat], accepts_cmyk: bool,
                  runner=None, stats: Optional[SpeedStats] = None) -> Tuple[DecodedImage, int]:
    """One timed decode-to-pixels call; DecodeFailure propagates."""
    options = decode_options(req, accepts_cmyk)
    t0 = now_s()
    image, decoded_bytes = engine.decode_pixels(data, options, accepted_formats, runner)
    t1 = now_s()
    if stats is not None:
        stats.notify_elapsed(t1 - t0)
        stats.set_image_size(image.info.xsize, image.info.ysize)
    return image, decoded_bytes


class Decompressor:
    """Runs one invocation: path choice, repeated decode calls, encode, writes."""

    def __init__(self, req: DecodeRequest, engine: Optional[DecodeEngine] = None,
                 printer: Optional[Printer] = None, stats: Optional[SpeedStats] = None,
                 encoder_factory: Callable[[str], Optional[Encoder]] = encoder_for):
        self.req = req
        self.engine = engine if engine is not None else PillowEngine()
        self.printer = printer if printer is not None else Printer(req.quiet, req.verbose)
        self.stats = stats if stats is not None else SpeedStats()
        self.encoder_factory = encoder_factory
        self.num_threads = resolve_num_threads(req.num_threads)

    def _reps(self, desc: str) -> tqdm:
        n = self.req.num_reps
        show = n > 1 and not self.req.quiet and not progress_disabled()
        return tqdm(range(n), desc=desc, unit="rep", leave=False, disable=not show)

    def _reconstruct(self, data: bytes, runner) -> Optional[bytes]:
        """Last reconstructed buffer, or None when nothing could be reconstructed."""
        legacy = b""
        with self._reps("jxldec reconstruct") as reps:
            for _ in reps:
                try:
                    legacy = reconstruct_legacy(self.req, data, self.engine, runner, self.stats)
                except DecodeFailure:
                    if not legacy:
                        return None
                    raise
        return legacy

    def _encoder(self, target: OutputTarget) -> Optional[Encoder]:
        if not target.filename:
            return None
        encoder = self.encoder_factory(target.extension)
        if encoder is None:
            if not target.extension:
                raise UsageError("couldn't detect output format, consider using --output_format.")
            raise UsageError(f"can't decode to the file extension '{target.extension}'.")
        return encoder

    def _pixels(self, req: DecodeRequest, data: bytes, runner, target: OutputTarget,
                outcome: DecodeOutcome) -> None:
        encoder = self._encoder(target)
        formats = build_accepted_formats(encoder, req.alpha_blend)
        accepts_cmyk = encoder.accepts_cmyk() if encoder is not None else False
        image, decoded_bytes = None, 0
        with self._reps("jxldec decode") as reps:
            for _ in reps:
                image, decoded_bytes = decode_pixels(req, data, self.engine, formats, accepts_cmyk,
                                                     runner, self.stats)
        outcome.image = image
        outcome.decoded_bytes = decoded_bytes
        self.printer(0, "Decoded to pixels.")
        if req.print_read_bytes:
            self.printer.report(f"Decoded bytes: {decoded_bytes}")
        if encoder is None:
            return

        if req.alpha_blend:
            try:
                alpha_blend(image, parse_background(req.background))
            except ValueError as e:
                raise EncodeFailure(f"AlphaBlend failed: {e}") from e
        encoder.set_option("q", req.jpeg_quality)
        self.printer(2, "Encoding decoded image")
        outcome.encoded = encoder.encode(image)
        outcome.written = write_encoded(outcome.encoded, image, req, target.filename,
                                        target.extension, self.printer)

    def run(self, data: bytes) -> DecodeOutcome:
        req = self.req
        if req.file_out is not None and req.disable_output:
            self.printer(0, "Decoding will be performed, but the result will be discarded.")
        target = output_target(req)
        req = apply_codec_defaults(req, target)

        outcome = DecodeOutcome()
        with ThreadRunner(self.num_threads) as runner:
            to_pixels = decode_to_pixels_requested(req, target.codec)
            if not to_pixels:
                outcome.path = PATH_RECONSTRUCT
                legacy = self._reconstruct(data, runner)
                if legacy is None:
                    self.printer.warn("could not decode losslessly to JPEG. "
                                      "Retrying with --pixels_to_jpeg...")
                    outcome.fell_back = True
                    to_pixels = True
                elif legacy:
                    outcome.legacy_bytes = legacy
                    self.printer(0, "Reconstructed to JPEG.")
                    if target.filename:
                        write_file(target.filename, legacy)
                        outcome.written.append(target.filename)
            if to_pixels:
                outcome.path = PATH_PIXELS
                self._pixels(req, data, runner, target, outcome)

        line = self.stats.format(self.num_threads)
        if line:
            self.printer.raw(line)
        return outcome
