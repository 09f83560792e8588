# Copyright (c) 2026 borntohonk
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

"""
Random-access byte sources for RomFS images.

A RomFS image is read through a BinaryDataAccessor: something that can read
N bytes at offset O and hand out bounded views of a sub-range. Views never
copy the underlying data, they only translate offsets, so the level data and
every file inside it can be addressed without loading the image twice.

Accessors are read-only and can be shared between threads as long as the
backing buffer is not modified.
"""

import mmap
import struct
from pathlib import Path
from typing import Union

from romfs_errors import RomfsBoundsError


class BinaryDataAccessor:
    """Read-only random access over a byte range."""

    @property
    def length(self) -> int:
        raise NotImplementedError

    def __len__(self):
        return self.length

    def _read(self, offset: int, count: int) -> bytes:
        raise NotImplementedError

    def _check_range(self, offset, count):
        if offset < 0 or count < 0 or offset + count > self.length:
            raise RomfsBoundsError(offset, count, self.length)

    def read_bytes(self, offset: int, count: int) -> bytes:
        self._check_range(offset, count)
        return self._read(offset, count)

    def read_all(self) -> bytes:
        return self.read_bytes(0, self.length)

    def read_int32(self, offset: int) -> int:
        return struct.unpack('<i', self.read_bytes(offset, 4))[0]

    def read_uint32(self, offset: int) -> int:
        return struct.unpack('<I', self.read_bytes(offset, 4))[0]

    def read_int64(self, offset: int) -> int:
        return struct.unpack('<q', self.read_bytes(offset, 8))[0]

    def read_fixed_string(self, offset: int, count: int, encoding: str = 'ascii') -> str:
        """Decode count bytes at offset. Undecodable bytes become U+FFFD."""
        return self.read_bytes(offset, count).decode(encoding, errors='replace')

    def get_data_reference(self, offset: int, count: int) -> 'BinaryDataView':
        """Return a view over [offset, offset + count) without copying."""
        self._check_range(offset, count)
        return BinaryDataView(self, offset, count)


class InMemoryBinaryFile(BinaryDataAccessor):
    """Accessor over an in-memory buffer."""

    def __init__(self, data: Union[bytes, bytearray, memoryview, mmap.mmap]):
        self._data = memoryview(data)

    @property
    def length(self):
        return len(self._data)

    def _read(self, offset, count):
        return self._data[offset:offset + count].tobytes()


class BinaryFile(InMemoryBinaryFile):
    """Accessor over a file on disk, mapped read-only."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._file = open(self.path, 'rb')
        self._mmap = None
        try:
            if self.path.stat().st_size > 0:
                self._mmap = mmap.mmap(self._file.fileno(), 0, access=mmap.ACCESS_READ)
                super().__init__(self._mmap)
            else:
                super().__init__(b'')
        except Exception:
            self._file.close()
            raise

    @classmethod
    def open(cls, path):
        return cls(path)

    def close(self):
        # the memoryview must go before the map it points into
        self._data.release()
        if self._mmap is not None:
            self._mmap.close()
            self._mmap = None
        self._file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()


class BinaryDataView(BinaryDataAccessor):
    """Bounded window into a parent accessor. Offsets are view-relative."""

    def __init__(self, parent: BinaryDataAccessor, offset: int, count: int):
        if offset < 0 or count < 0 or offset + count > parent.length:
            raise RomfsBoundsError(offset, count, parent.length)
        # collapse nested views so reads go straight to the backing accessor
        if isinstance(parent, BinaryDataView):
            offset += parent.offset
            parent = parent.parent
        self.parent = parent
        self.offset = offset
        self._length = count

    @property
    def length(self):
        return self._length

    def _read(self, offset, count):
        return self.parent.read_bytes(self.offset + offset, count)

    def __repr__(self):
        return f"BinaryDataView(offset=0x{self.offset:X}, length=0x{self._length:X})"
