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
IVFC container header and level layout.

The RomFS image starts with an IVFC header describing three hash levels.
Level 3 holds the actual RomFS (directory/file metadata and file data);
levels 1 and 2 are hash trees over the level below. None of the level
positions are stored directly, they are derived from the header fields by
resolve_level_locations().
"""

import struct
from dataclasses import dataclass
from typing import List, Optional

import util
from romfs_errors import RomfsFormatError

IVFC_MAGIC = b'IVFC'
ROMFS_HEADER_SIZE = 0x6B
IVFC_LEVEL_HEADER_SIZE = 0x28
IVFC_MASTER_HASH_OFFSET = 0x60  # master hash follows the header
IVFC_LEVEL_COUNT = 3


class RomFsHeader:
    """IVFC container header (0x6B bytes, little-endian)."""
    def __init__(self, data):
        if len(data) < ROMFS_HEADER_SIZE:
            raise RomfsFormatError(f"RomFS header too small: 0x{len(data):X} < 0x{ROMFS_HEADER_SIZE:X}")

        self.magic = data[0x0:0x4].decode('ascii', errors='replace')
        (self.magic_number, self.master_hash_size) = struct.unpack('<iI', data[0x4:0xC])

        (self.level1_logical_offset, self.level1_hash_data_size,
         self.level1_block_size, self.reserved1) = struct.unpack('<qqII', data[0x0C:0x24])
        (self.level2_logical_offset, self.level2_hash_data_size,
         self.level2_block_size, self.reserved2) = struct.unpack('<qqII', data[0x24:0x3C])
        (self.level3_logical_offset, self.level3_hash_data_size,
         self.level3_block_size, self.reserved3) = struct.unpack('<qqII', data[0x3C:0x54])

        (self.reserved4, self.optional_info_size) = struct.unpack('<II', data[0x54:0x5C])

    @property
    def is_valid(self):
        return self.magic == IVFC_MAGIC.decode('ascii')

    def __repr__(self):
        return (f"RomFsHeader(magic={self.magic!r}, magic_number=0x{self.magic_number:X}, "
                f"master_hash_size=0x{self.master_hash_size:X})")


@dataclass
class IvfcLevelLocation:
    """Computed position of one IVFC level. Not an on-disk structure."""
    hash_block_size: int
    hash_offset: int = 0
    data_offset: int = 0
    data_size: int = 0
    hash_check: Optional[bool] = None  # None until the level hashes are verified

    def __repr__(self):
        return (f"IvfcLevelLocation(hash_offset=0x{self.hash_offset:X}, hash_block_size=0x{self.hash_block_size:X}, "
                f"data_offset=0x{self.data_offset:X}, data_size=0x{self.data_size:X})")


def resolve_level_locations(header: RomFsHeader) -> List[IvfcLevelLocation]:
    """
    Compute where the three IVFC levels live inside the image.

    Args:
        header: Parsed container header

    Returns:
        [level1, level2, level3] locations. Level 3 is the RomFS body.
    """
    levels = [
        IvfcLevelLocation(hash_block_size=1 << header.level1_block_size, hash_offset=IVFC_MASTER_HASH_OFFSET),
        IvfcLevelLocation(hash_block_size=1 << header.level2_block_size),
        IvfcLevelLocation(hash_block_size=1 << header.level3_block_size),
    ]

    body_offset = util.align_up(levels[0].hash_offset + header.master_hash_size, levels[2].hash_block_size)
    body_size = header.level3_hash_data_size

    levels[2].data_offset = body_offset
    levels[2].data_size = util.align_up(body_size, levels[2].hash_block_size)

    levels[1].hash_offset = util.align_up(body_offset + body_size, levels[2].hash_block_size)
    levels[2].hash_offset = levels[1].hash_offset + header.level2_logical_offset - header.level1_logical_offset

    # levels 1 and 2 both start at the level 3 hash table
    levels[1].data_offset = levels[2].hash_offset
    levels[1].data_size = util.align_up(header.level2_hash_data_size, levels[1].hash_block_size)

    levels[0].data_offset = levels[2].hash_offset
    levels[0].data_size = util.align_up(header.level1_hash_data_size, levels[0].hash_block_size)

    return levels


class IvfcLevelHeader:
    """RomFS level header (0x28 bytes) at the start of a level's data."""
    def __init__(self, data):
        if len(data) < IVFC_LEVEL_HEADER_SIZE:
            raise RomfsFormatError(
                f"IVFC level header too small: 0x{len(data):X} < 0x{IVFC_LEVEL_HEADER_SIZE:X}"
            )

        (self.length,
         self.directory_hash_table_offset,
         self.directory_hash_table_length,
         self.directory_metadata_table_offset,
         self.directory_metadata_table_length,
         self.file_hash_table_offset,
         self.file_hash_table_length,
         self.file_metadata_table_offset,
         self.file_metadata_table_length,
         self.file_data_offset) = struct.unpack('<10I', data[:IVFC_LEVEL_HEADER_SIZE])
