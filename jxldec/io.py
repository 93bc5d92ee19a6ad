import sys
import numpy as np
from pathlib import Path

from jxldec.errors import InputError, WriteFailure
from jxldec.formats import PixelFormat
from jxldec.naming import STDIO


def read_file(path: str) -> bytes:
    try:
        if path == STDIO:
            return sys.stdin.buffer.read()
        return Path(path).read_bytes()
    except OSError as e:
        raise InputError(f"couldn't load {path}: {e}") from e


def write_file(path: str, data: bytes) -> None:
    """'-' appends to stdout, so several bitstreams concatenate onto one stream."""
    try:
        if path == STDIO:
            sys.stdout.buffer.write(data)
            sys.stdout.buffer.flush()
            return
        Path(path).write_bytes(data)
    except OSError as e:
        raise WriteFailure(f"couldn't write {path}: {e}") from e


def to_unit_float(arr: np.ndarray, fmt: PixelFormat) -> np.ndarray:
    """Samples of `fmt` -> float32 with 1.0 as nominal white."""
    x = arr.astype(np.float32)
    if not fmt.is_float:
        x /= fmt.max_value
    return x


def from_unit_float(x: np.ndarray, fmt: PixelFormat, bits: int | None = None) -> np.ndarray:
    """
    float32 in [0, 1] -> samples of `fmt`.
    `bits` below the container width quantizes to that precision first; the
    result still spans the full container range.
    """
    dt = fmt.dtype()
    if fmt.is_float:
        return x.astype(dt)
    maxv = fmt.max_value
    y = np.clip(x, 0.0, 1.0)
    if bits is not None and 0 < bits < 8 * fmt.bytes_per_sample:
        q = float((1 << bits) - 1)
        y = np.floor(y * q + 0.5) / q
    return np.floor(y * maxv + 0.5).astype(dt)
