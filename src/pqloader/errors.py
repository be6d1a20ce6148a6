"""
pqloader errors.

Every failure raised by the readers derives from :class:`ReaderError`.
The concrete classes also inherit the closest built-in exception so that
callers catching ``OSError`` or ``ValueError`` keep working.
"""

from __future__ import annotations

from typing import List, Tuple


class ReaderError(Exception):
    """Base class for all reader failures."""


class ReaderIOError(ReaderError, OSError):
    """A file could not be opened, stat'ed, or read.  Never retried."""


class FormatError(ReaderError, ValueError):
    """Metadata or row data does not match the Parquet layout."""


class DecodeError(ReaderError):
    """A column or page failed to decode (e.g. an unsupported codec)."""


class ReaderClosedError(ReaderError, ValueError):
    """An operation was attempted on a reader after ``close()``."""


class CloseError(ReaderError):
    """One or more member readers failed to close.

    Parameters
    ----------
    errors : list of (path, exception)
        Every failure, in member order.
    """

    def __init__(self, errors: List[Tuple[str, BaseException]]) -> None:
        self.errors = list(errors)
        paths = ", ".join(repr(path) for path, _ in self.errors)
        super().__init__(f"failed to close {len(self.errors)} reader(s): {paths}")
