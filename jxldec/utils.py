import os
import sys
import time


def now_s():
    return time.perf_counter()


def env_int(*keys, default=None):
    for k in keys:
        v = os.environ.get(k)
        if v and str(v).strip():
            try:
                return int(v)
            except ValueError:
                pass
    return default


def progress_disabled() -> bool:
    return os.environ.get("JXLDEC_NOPROGRESS", "") == "1"


class Printer:
    """
    stderr reporter with quiet/verbose gating.
      level 0: shown unless quiet
      level N: shown when verbose >= N
    Errors always go through.
    """
    def __init__(self, quiet: bool = False, verbose: int = 0, stream=None):
        self.quiet = bool(quiet)
        self.verbose = int(verbose)
        self.stream = stream

    def _out(self):
        return self.stream if self.stream is not None else sys.stderr

    def __call__(self, level: int, msg: str) -> None:
        if self.quiet or level > self.verbose:
            return
        print(f"[JXLDEC] {msg}", file=self._out())

    def warn(self, msg: str) -> None:
        if self.quiet:
            return
        print(f"[JXLDEC] Warning: {msg}", file=self._out())

    def error(self, msg: str) -> None:
        print(f"[JXLDEC] {msg}", file=self._out())

    def report(self, msg: str) -> None:
        """Explicitly requested output; printed even when quiet."""
        print(msg, file=self._out())

    def raw(self, msg: str) -> None:
        if self.quiet:
            return
        print(msg, file=self._out())
