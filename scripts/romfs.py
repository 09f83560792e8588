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
RomFS (3DS IVFC level 3) reader.

The level 3 data starts with an IvfcLevelHeader pointing at four tables:
directory hash table, directory metadata table, file hash table and file
metadata table, followed by the raw file data. Directory and file records
reference each other by table-relative offsets, so the tree is rebuilt by
following those offsets:

  directory.first_child_directory_offset -> child -> sibling -> sibling ...
  directory.first_file_offset            -> file  -> sibling -> sibling ...

A chain ends at an offset <= 0 (0 or 0xFFFFFFFF on disk).
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

import ivfc
from data_accessor import BinaryDataAccessor, BinaryFile, InMemoryBinaryFile
from romfs_errors import RomfsCorruptionError, RomfsFormatError

logger = logging.getLogger(__name__)

ROMFS_DIR_ENTRY_SIZE = 0x18
ROMFS_FILE_ENTRY_SIZE = 0x20
DEFAULT_MAX_NAME_LENGTH = 1000  # UTF-16 code units


@dataclass
class RomfsConfig:
    """Tunables for reading and extracting a RomFS image."""
    max_name_length: int = DEFAULT_MAX_NAME_LENGTH
    max_workers: Optional[int] = None

    def __post_init__(self):
        if self.max_name_length < 0:
            raise ValueError(f"max_name_length must not be negative, got {self.max_name_length}")
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")

    @property
    def worker_count(self):
        return self.max_workers or os.cpu_count() or 1


def _read_name(data, offset, name_length, config):
    if name_length <= 0:
        return ""
    if name_length > config.max_name_length:
        logger.warning('Name length %d at 0x%X exceeds %d, clamping', name_length, offset, config.max_name_length)
        name_length = config.max_name_length
    return data.read_fixed_string(offset, name_length * 2, 'utf-16-le')


class DirectoryMetadata:
    """RomFS directory metadata record (0x18 bytes + UTF-16 name)."""
    def __init__(self, offset=0):
        self.offset = offset  # within the directory metadata table
        self.parent_directory_offset = 0  # self for the root
        self.sibling_directory_offset = 0
        self.first_child_directory_offset = 0
        self.first_file_offset = 0
        self.next_directory_offset = 0  # next directory in the same hash bucket
        self.name_length = 0
        self.name = ""
        self.child_directories: List['DirectoryMetadata'] = []
        self.child_files: List['FileMetadata'] = []

    @classmethod
    def load(cls, data: BinaryDataAccessor, header: ivfc.IvfcLevelHeader, offset: int,
             config: Optional[RomfsConfig] = None) -> 'DirectoryMetadata':
        """Read the record at offset. Children are not loaded."""
        config = config or RomfsConfig()
        position = header.directory_metadata_table_offset + offset
        metadata = cls(offset)
        metadata.parent_directory_offset = data.read_int32(position + 0x0)
        metadata.sibling_directory_offset = data.read_int32(position + 0x4)
        metadata.first_child_directory_offset = data.read_int32(position + 0x8)
        metadata.first_file_offset = data.read_int32(position + 0xC)
        metadata.next_directory_offset = data.read_int32(position + 0x10)
        metadata.name_length = data.read_int32(position + 0x14)
        metadata.name = _read_name(data, position + ROMFS_DIR_ENTRY_SIZE, metadata.name_length, config)
        logger.debug('Directory 0x%X: %r', offset, metadata.name)
        return metadata

    @property
    def is_root(self):
        return self.name_length == 0

    def count_child_files(self):
        """Number of files in this directory and all of its subdirectories."""
        count = 0
        stack = [self]
        while stack:
            directory = stack.pop()
            count += len(directory.child_files)
            stack.extend(directory.child_directories)
        return count

    def __repr__(self):
        return f"RomFS Directory Metadata: {self.name}" if self.name else "RomFS Directory Metadata (No Name)"


class FileMetadata:
    """RomFS file metadata record (0x20 bytes + UTF-16 name)."""
    def __init__(self, data: BinaryDataAccessor, header: ivfc.IvfcLevelHeader, offset=0):
        self._level_data = data
        self.header = header
        self.offset = offset  # within the file metadata table
        self.containing_directory_offset = 0
        self.next_sibling_file_offset = 0
        self.file_data_offset = 0  # relative to header.file_data_offset
        self.file_data_length = 0
        self.next_file_offset = 0  # next file in the same hash bucket
        self.name_length = 0
        self.name = ""

    @classmethod
    def load(cls, data: BinaryDataAccessor, header: ivfc.IvfcLevelHeader, offset: int,
             config: Optional[RomfsConfig] = None) -> 'FileMetadata':
        config = config or RomfsConfig()
        position = header.file_metadata_table_offset + offset
        metadata = cls(data, header, offset)
        metadata.containing_directory_offset = data.read_int32(position + 0x0)
        metadata.next_sibling_file_offset = data.read_int32(position + 0x4)
        metadata.file_data_offset = data.read_int64(position + 0x8)
        metadata.file_data_length = data.read_int64(position + 0x10)
        metadata.next_file_offset = data.read_int32(position + 0x18)
        metadata.name_length = data.read_int32(position + 0x1C)
        metadata.name = _read_name(data, position + ROMFS_FILE_ENTRY_SIZE, metadata.name_length, config)
        logger.debug('File 0x%X: %r (0x%X bytes at 0x%X)', offset, metadata.name,
                     metadata.file_data_length, metadata.file_data_offset)
        return metadata

    def get_data_reference(self) -> BinaryDataAccessor:
        """Bounded view over this file's data. Nothing is read until asked."""
        return self._level_data.get_data_reference(self.header.file_data_offset + self.file_data_offset,
                                                   self.file_data_length)

    def read(self) -> bytes:
        return self.get_data_reference().read_all()

    def __repr__(self):
        return f"RomFS File Metadata: {self.name}" if self.name else "RomFS File Metadata (No Name)"


class IvfcLevel:
    """A loaded IVFC level: its header, hash tables and the rebuilt tree."""
    def __init__(self, data: BinaryDataAccessor, header: ivfc.IvfcLevelHeader, config: Optional[RomfsConfig] = None):
        self.level_data = data
        self.header = header
        self.config = config or RomfsConfig()
        self.directory_hash_key_table = b''
        self.file_hash_key_table = b''
        self.root_directory: Optional[DirectoryMetadata] = None
        self.root_files: List[FileMetadata] = []

    @classmethod
    def load(cls, romfs_data: BinaryDataAccessor, location: ivfc.IvfcLevelLocation,
             config: Optional[RomfsConfig] = None) -> 'IvfcLevel':
        header = ivfc.IvfcLevelHeader(romfs_data.read_bytes(location.data_offset, ivfc.IVFC_LEVEL_HEADER_SIZE))
        level = cls(romfs_data.get_data_reference(location.data_offset, location.data_size), header, config)
        level.initialize()
        return level

    def initialize(self):
        self.directory_hash_key_table = self.level_data.read_bytes(self.header.directory_hash_table_offset,
                                                                   self.header.directory_hash_table_length)
        self.file_hash_key_table = self.level_data.read_bytes(self.header.file_hash_table_offset,
                                                              self.header.file_hash_table_length)
        self.root_directory = self._load_directory_tree()
        self.root_files = self._load_root_files()

    def _load_directory(self, offset):
        return DirectoryMetadata.load(self.level_data, self.header, offset, self.config)

    def _load_file(self, offset):
        return FileMetadata.load(self.level_data, self.header, offset, self.config)

    def _load_directory_tree(self):
        root = self._load_directory(0)
        visited = {0}
        stack = [root]
        while stack:
            directory = stack.pop()
            directory.child_files = self._load_file_chain(directory.first_file_offset)
            directory.child_directories = self._load_directory_chain(directory.first_child_directory_offset, visited)
            stack.extend(directory.child_directories)
        return root

    def _load_directory_chain(self, offset, visited):
        directories = []
        while offset > 0:
            if offset in visited:
                raise RomfsCorruptionError(f"Directory metadata at 0x{offset:X} is linked more than once")
            visited.add(offset)
            directory = self._load_directory(offset)
            directories.append(directory)
            offset = directory.sibling_directory_offset
        return directories

    def _load_file_chain(self, offset, first=None):
        files = []
        visited = set()
        if first is not None:
            files.append(first)
            visited.add(first.offset)
            offset = first.next_sibling_file_offset
        while offset > 0:
            if offset in visited:
                raise RomfsCorruptionError(f"File metadata at 0x{offset:X} is linked more than once")
            visited.add(offset)
            metadata = self._load_file(offset)
            files.append(metadata)
            offset = metadata.next_sibling_file_offset
        return files

    def _load_root_files(self):
        if self.header.file_metadata_table_length < ROMFS_FILE_ENTRY_SIZE:
            return []
        first = self._load_file(0)
        # an unnamed record in the root slot means there are no root files
        if not first.name:
            return []
        return self._load_file_chain(0, first=first)


class RomFs:
    """
    RomFS container: IVFC header, level layout and the level 3 tree.

    Use RomFs.open() to parse an image; the tree is built eagerly.
    """
    def __init__(self, data: BinaryDataAccessor, header: ivfc.RomFsHeader, config: Optional[RomfsConfig] = None):
        if data is None:
            raise TypeError("data must not be None")
        if header is None:
            raise TypeError("header must not be None")
        self.data = data
        self.header = header
        self.config = config or RomfsConfig()
        self._level_locations = ivfc.resolve_level_locations(header)
        self.body_offset = self._level_locations[2].data_offset
        self.body_size = header.level3_hash_data_size
        self.level3: Optional[IvfcLevel] = None
        self._owns_data = False

    @staticmethod
    def probe(source) -> bool:
        """True if source starts with the IVFC magic. Never raises for bad input."""
        try:
            if isinstance(source, (str, Path)):
                with BinaryFile(source) as data:
                    return RomFs.probe(data)
            data = _as_accessor(source)
            if data.length < 4:
                return False
            return data.read_fixed_string(0, 4, 'ascii') == ivfc.IVFC_MAGIC.decode('ascii')
        except Exception:
            return False

    @classmethod
    def open(cls, source: Union[BinaryDataAccessor, bytes, bytearray, memoryview, str, Path],
             config: Optional[RomfsConfig] = None) -> 'RomFs':
        """
        Parse a RomFS image and build its tree.

        Args:
            source: Accessor, raw bytes, or a path to the image
            config: Optional RomfsConfig

        Raises:
            RomfsFormatError: if the header is short or the magic is wrong
            RomfsBoundsError: if a table or record lies outside the image
            RomfsCorruptionError: if the metadata chains loop
        """
        owns_data = isinstance(source, (str, Path))
        data = BinaryFile(source) if owns_data else _as_accessor(source)
        try:
            header = ivfc.RomFsHeader(data.read_bytes(0, min(data.length, ivfc.ROMFS_HEADER_SIZE)))
            if not header.is_valid:
                raise RomfsFormatError(f"Invalid RomFS magic: {header.magic!r}, expected {ivfc.IVFC_MAGIC!r}")
            romfs = cls(data, header, config)
            romfs._owns_data = owns_data
            romfs.initialize()
        except Exception:
            if owns_data:
                data.close()
            raise
        logger.info('Loaded RomFS: %d directories, %d files',
                    romfs.count_directories(), romfs.count_files())
        return romfs

    def initialize(self):
        # TODO: verify the level 1 and level 2 hash chains and set hash_check before trusting level 3
        self.level3 = IvfcLevel.load(self.data, self._level_locations[2], self.config)

    @property
    def level_locations(self) -> Tuple[ivfc.IvfcLevelLocation, ...]:
        return tuple(self._level_locations)

    @property
    def root_directory(self) -> DirectoryMetadata:
        return self.level3.root_directory

    @property
    def root_files(self) -> List[FileMetadata]:
        return self.level3.root_files

    def count_files(self):
        return len(self.root_files) + self.root_directory.count_child_files()

    def count_directories(self):
        count = 0
        stack = list(self.root_directory.child_directories)
        while stack:
            directory = stack.pop()
            count += 1
            stack.extend(directory.child_directories)
        return count

    def iter_files(self) -> Iterator[Tuple[str, FileMetadata]]:
        """Yield (path, file) pairs: root files first, then a depth-first walk."""
        for f in self.root_files:
            yield f.name, f
        stack = [(self.root_directory, "")]
        while stack:
            directory, path = stack.pop()
            for f in directory.child_files:
                yield f"{path}{f.name}", f
            for child in reversed(directory.child_directories):
                stack.append((child, f"{path}{child.name}/"))

    def get_file(self, path: str) -> Optional[FileMetadata]:
        """Find a file by its '/' separated path, or None."""
        parts = [part for part in path.replace('\\', '/').split('/') if part]
        if not parts:
            return None
        *directories, file_name = parts
        if not directories:
            for f in self.root_files:
                if f.name == file_name:
                    return f
        directory = self.root_directory
        for name in directories:
            directory = next((d for d in directory.child_directories if d.name == name), None)
            if directory is None:
                return None
        return next((f for f in directory.child_files if f.name == file_name), None)

    def extract_files(self, directory_name, provider=None, progress=None):
        import romfs_extract
        romfs_extract.extract_files(self, directory_name, provider=provider, progress=progress, config=self.config)

    def close(self):
        if self._owns_data:
            self.data.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()


def _as_accessor(source):
    if isinstance(source, BinaryDataAccessor):
        return source
    if isinstance(source, (bytes, bytearray, memoryview)):
        return InMemoryBinaryFile(source)
    raise TypeError(f"source must be a BinaryDataAccessor, bytes or a path, got {type(source)}")


def romfs_print(romfs: RomFs):
    """Print RomFS information."""
    header = romfs.header
    print("RomFS Information:")
    print(f"  Magic: {header.magic} (0x{header.magic_number:X})")
    print(f"  Master Hash Size: 0x{header.master_hash_size:X}")
    for i in range(ivfc.IVFC_LEVEL_COUNT):
        logical_offset = getattr(header, f"level{i + 1}_logical_offset")
        hash_data_size = getattr(header, f"level{i + 1}_hash_data_size")
        block_size = getattr(header, f"level{i + 1}_block_size")
        location = romfs.level_locations[i]
        print(f"  Level {i + 1}:")
        print(f"    Logical Offset: 0x{logical_offset:X}")
        print(f"    Hash Data Size: 0x{hash_data_size:X}")
        print(f"    Block Size: 0x{1 << block_size:X}")
        print(f"    Hash Offset: 0x{location.hash_offset:X}")
        print(f"    Data Offset: 0x{location.data_offset:X}")
        print(f"    Data Size: 0x{location.data_size:X}")
    level_header = romfs.level3.header
    print(f"  Body Offset: 0x{romfs.body_offset:X}")
    print(f"  Body Size: 0x{romfs.body_size:X}")
    print(f"  Dir Hash Table Offset: 0x{level_header.directory_hash_table_offset:X}")
    print(f"  Dir Hash Table Size: 0x{level_header.directory_hash_table_length:X}")
    print(f"  Dir Meta Table Offset: 0x{level_header.directory_metadata_table_offset:X}")
    print(f"  Dir Meta Table Size: 0x{level_header.directory_metadata_table_length:X}")
    print(f"  File Hash Table Offset: 0x{level_header.file_hash_table_offset:X}")
    print(f"  File Hash Table Size: 0x{level_header.file_hash_table_length:X}")
    print(f"  File Meta Table Offset: 0x{level_header.file_metadata_table_offset:X}")
    print(f"  File Meta Table Size: 0x{level_header.file_metadata_table_length:X}")
    print(f"  Data Offset: 0x{level_header.file_data_offset:X}")
    print(f"  Directories: {romfs.count_directories()}")
    print(f"  Files: {romfs.count_files()}")
