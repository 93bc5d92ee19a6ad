# jxldec/errors.py
from __future__ import annotations

__all__ = [
    "JxlDecError",
    "UsageError",
    "InputError",
    "DecodeFailure",
    "EncodeFailure",
    "WriteFailure",
    "InvalidSpec",
    "EXIT_SUCCESS",
    "EXIT_FAILURE",
]

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


class JxlDecError(Exception):
    """Fatal condition; the CLI prints the message and exits non-zero."""
    exit_code: int = EXIT_FAILURE


class UsageError(JxlDecError):
    """Bad or missing flags / positional arguments."""


class InputError(JxlDecError):
    """Input could not be read."""


class DecodeFailure(JxlDecError):
    """The decode engine rejected the input."""


class EncodeFailure(JxlDecError):
    """The output encoder rejected the decoded image."""


class WriteFailure(JxlDecError):
    """An output file could not be written."""


class InvalidSpec(ValueError):
    """Malformed option value such as a background colour."""
