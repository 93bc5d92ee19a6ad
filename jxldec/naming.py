# jxldec/naming.py
from __future__ import annotations

__all__ = ["STDIO", "digits", "derive_filename"]

STDIO = "-"


def digits(n: int) -> int:
    """1 + floor(log10(n)) for n >= 1."""
    return len(str(max(1, int(n))))


def derive_filename(filename: str, extension: str, layer_index: int, frame_index: int,
                    num_layers: int, num_frames: int) -> str:
    """
    Output path of one (layer, frame) bitstream.
    Layer 0 is the color image, layer i > 0 is extra channel i - 1.
    Suffixes go after the full given name: out.png -> out.png-03.png
    """
    if filename == STDIO:
        return STDIO
    out = filename
    if num_frames > 1:
        out += "-%0*d" % (digits(num_frames), frame_index)
    if num_layers > 1 and layer_index > 0:
        out += "-ec%0*d" % (digits(num_layers), layer_index)
    if extension == ".ppm" and layer_index > 0:
        out += ".pgm"
    elif num_frames > 1 or (num_layers > 1 and layer_index > 0):
        out += extension
    return out
