"""
pqloader source — random-access byte ranges over an open file handle.

:class:`ByteSource` is the adapter handed to the Parquet decoder.  It owns
exactly one handle and implements the :class:`io.RawIOBase` protocol, so
pyarrow can consume it as a seekable file, while :meth:`ByteSource.read_range`
gives direct ``[start, end)`` access.
"""

from __future__ import annotations

import io
import logging
import os
from typing import BinaryIO, Optional, Union

from pqloader.errors import ReaderIOError

logger = logging.getLogger(__name__)

# Upper bound on bytes requested from the handle in a single read call.
MAX_READ_SIZE: int = 16384


class ByteSource(io.RawIOBase):
    """Seekable, read-only view over *handle* of length *size*.

    Parameters
    ----------
    handle : binary file object
        Open handle supporting ``seek`` and ``readinto``.  Owned by the
        source and closed with it.
    size : int
        Byte length of the underlying file.
    max_read : int
        Largest single read issued against the handle.
    name : str or None
        Used in error messages.
    """

    def __init__(
        self,
        handle: BinaryIO,
        size: int,
        max_read: int = MAX_READ_SIZE,
        name: Optional[str] = None,
    ) -> None:
        super().__init__()
        self._handle = handle
        if size < 0:
            raise ValueError(f"size must be >= 0, got {size}")
        if max_read < 1:
            raise ValueError(f"max_read must be >= 1, got {max_read}")
        self._size = size
        self._pos = 0
        self.max_read = max_read
        self.name = name if name is not None else getattr(handle, "name", "<handle>")

    @classmethod
    def open(cls, path: Union[str, os.PathLike], max_read: int = MAX_READ_SIZE) -> ByteSource:
        """Open *path* for reading and wrap it."""
        path = os.fspath(path)
        try:
            handle = open(path, "rb", buffering=0)  # noqa: SIM115
        except OSError as exc:
            raise ReaderIOError(f"cannot open '{path}': {exc}") from exc
        try:
            size = os.fstat(handle.fileno()).st_size
        except OSError as exc:
            handle.close()
            raise ReaderIOError(f"cannot stat '{path}': {exc}") from exc
        logger.debug("opened %s (%d bytes)", path, size)
        return cls(handle, size, max_read=max_read, name=path)

    @property
    def byte_length(self) -> int:
        return self._size

    # -- range access -------------------------------------------------------

    def read_range(self, start: int, end: Optional[int] = None) -> bytes:
        """Return bytes ``[start, end)``; *end* defaults to the file size.

        Short reads from the handle are retried until the range is filled.
        The result is shorter than requested only if the handle hits EOF.
        """
        self._check_not_closed()
        if end is None:
            end = self._size
        if start < 0 or end < start:
            raise ValueError(f"invalid byte range [{start}, {end})")

        length = end - start
        buffer = bytearray(length)
        view = memoryview(buffer)
        offset = 0
        try:
            while offset < length:
                request = min(length - offset, self.max_read)
                self._handle.seek(start + offset)
                got = self._handle.readinto(view[offset:offset + request])
                if not got:
                    break
                offset += got
        except OSError as exc:
            raise ReaderIOError(f"read of [{start}, {end}) from '{self.name}' failed: {exc}") from exc
        finally:
            view.release()
        if offset < length:
            del buffer[offset:]
        return bytes(buffer)

    # -- io.RawIOBase protocol ---------------------------------------------

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def tell(self) -> int:
        self._check_not_closed()
        return self._pos

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        self._check_not_closed()
        if whence == io.SEEK_SET:
            pos = offset
        elif whence == io.SEEK_CUR:
            pos = self._pos + offset
        elif whence == io.SEEK_END:
            pos = self._size + offset
        else:
            raise ValueError(f"invalid whence: {whence}")
        if pos < 0:
            raise ValueError(f"negative seek position {pos}")
        self._pos = pos
        return pos

    def readinto(self, b) -> int:
        end = min(self._pos + len(b), self._size)
        if end <= self._pos:
            return 0
        data = self.read_range(self._pos, end)
        n = len(data)
        b[:n] = data
        self._pos += n
        return n

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._handle.close()
            logger.debug("closed %s", self.name)
        finally:
            super().close()

    def _check_not_closed(self) -> None:
        if self.closed:
            raise ValueError(f"I/O operation on closed byte source '{self.name}'")

    def __repr__(self) -> str:
        return f"ByteSource({self.name!r}, size={self._size})"
