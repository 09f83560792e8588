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
RomFS hash table helpers (per 3dbrew.org/wiki/RomFS).

The directory and file hash tables map calc_path_hash(name, parent) modulo the
bucket count to the first record in that bucket; records in the same bucket
are chained through their next-hash offsets.
"""

PATH_HASH_SEED = 123456789
HASH_TABLE_PRIMES = (2, 3, 5, 7, 11, 13, 17)


def get_hash_table_length(num_entries: int) -> int:
    """Bucket count for a table holding num_entries records."""
    count = num_entries
    if num_entries < 3:
        count = 3
    elif num_entries < 19:
        count |= 1
    else:
        while any(count % prime == 0 for prime in HASH_TABLE_PRIMES):
            count += 1
    return count


def calc_path_hash(name: bytes, parent_offset: int) -> int:
    """
    Hash a UTF-16LE encoded name together with its parent directory offset.

    Args:
        name: Raw UTF-16LE name bytes
        parent_offset: Offset of the parent directory in the directory metadata table

    Returns:
        32-bit unsigned hash
    """
    if len(name) % 2:
        raise ValueError(f"UTF-16 name must have an even byte length, got {len(name)}")

    hash = (parent_offset ^ PATH_HASH_SEED) & 0xFFFFFFFF
    for i in range(0, len(name), 2):
        hash = ((hash >> 5) | (hash << 27)) & 0xFFFFFFFF
        hash ^= name[i] | (name[i + 1] << 8)
    return hash
