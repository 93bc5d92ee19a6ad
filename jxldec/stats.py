# jxldec/stats.py
from __future__ import annotations
from typing import List, Optional, Tuple

import numpy as np

__all__ = ["SpeedStats"]


class SpeedStats:
    """Elapsed-time samples of repeated decodes; one sample per completed call."""

    def __init__(self):
        self.elapsed: List[float] = []
        self.xsize = 0
        self.ysize = 0
        self.file_size = 0

    def notify_elapsed(self, seconds: float) -> None:
        self.elapsed.append(max(float(seconds), 1e-9))

    def set_image_size(self, xsize: int, ysize: int) -> None:
        self.xsize = int(xsize)
        self.ysize = int(ysize)

    def set_file_size(self, nbytes: int) -> None:
        self.file_size = int(nbytes)

    @property
    def num_samples(self) -> int:
        return len(self.elapsed)

    def summary(self) -> Optional[Tuple[str, float, float, float, float]]:
        """-> (label, central seconds, min, max, relative stdev) or None without samples."""
        if not self.elapsed:
            return None
        t = np.asarray(self.elapsed, dtype=np.float64)
        lo, hi = float(t.min()), float(t.max())
        if t.size == 1:
            return "", float(t[0]), lo, hi, 0.0
        if t.size == 2:
            return "mean of 2: ", float(t.mean()), lo, hi, 0.0
        geo = float(np.exp(np.mean(np.log(t))))
        rel = float(np.std(t, ddof=0) / t.mean())
        return "geomean: ", geo, lo, hi, rel

    def format(self, worker_threads: int) -> Optional[str]:
        s = self.summary()
        if s is None:
            return None
        label, central, lo, hi, rel = s
        mp = self.xsize * self.ysize * 1e-6
        # min time -> max throughput
        line = (f"{self.xsize} x {self.ysize}, {label}{mp / central:.3f} MP/s "
                f"[{mp / hi:.2f}, {mp / lo:.2f}]")
        if self.file_size:
            mb = self.file_size * 1e-6
            line += f", {mb / central:.2f} MB/s [{mb / hi:.2f}, {mb / lo:.2f}]"
        if rel > 0:
            line += f" (stdev {rel * 100:.3f}%)"
        line += f", {len(self.elapsed)} reps, {worker_threads} threads."
        return line
