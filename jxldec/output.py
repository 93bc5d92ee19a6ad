# jxldec/output.py
from __future__ import annotations
from typing import List

from jxldec.config import DecodeRequest
from jxldec.errors import EncodeFailure
from jxldec.image import DecodedImage, EncodedResult
from jxldec.io import write_file
from jxldec.naming import derive_filename
from jxldec.utils import Printer

__all__ = ["layer_count", "frame_count", "write_optional_output", "write_encoded"]


def layer_count(encoded: EncodedResult, output_extra_channels: bool) -> int:
    if output_extra_channels:
        return 1 + len(encoded.extra_channel_bitstreams)
    return 1


def frame_count(encoded: EncodedResult, output_frames: bool, coalescing: bool) -> int:
    if output_frames or not coalescing:
        return len(encoded.bitstreams)
    return 1


def write_optional_output(path: str, data: bytes) -> bool:
    """Side file; nothing is written (and nothing fails) without a path or bytes."""
    if not path or not data:
        return False
    write_file(path, data)
    return True


def write_encoded(encoded: EncodedResult, image: DecodedImage, req: DecodeRequest,
                  filename: str, extension: str, printer: Printer | None = None) -> List[str]:
    """
    Write every (layer, frame) bitstream, then the optional side files.
    The first failing write raises WriteFailure and stops the fan-out.
    Returns the paths written, in order.
    """
    printer = printer or Printer(quiet=True)
    if not encoded.bitstreams:
        raise EncodeFailure("encoder produced no bitstreams")
    nlayers = layer_count(encoded, req.output_extra_channels)
    nframes = frame_count(encoded, req.output_frames, req.coalescing)
    written: List[str] = []
    for i in range(nlayers):
        for j in range(nframes):
            bitstream = encoded.bitstreams[j] if i == 0 else encoded.extra_channel_bitstreams[i - 1][j]
            fn = derive_filename(filename, extension, i, j, nlayers, nframes)
            write_file(fn, bitstream)
            written.append(fn)
            printer(1, f"Wrote output to {fn}")

    for path, data in ((req.preview_out, encoded.preview_bitstream),
                       (req.icc_out, image.icc),
                       (req.orig_icc_out, image.orig_icc),
                       (req.metadata_out, encoded.metadata)):
        if write_optional_output(path, data):
            written.append(path)
    return written
