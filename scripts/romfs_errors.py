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

"""Exceptions raised while reading RomFS images."""


class RomfsError(ValueError):
    """Base class for every RomFS format problem."""


class RomfsFormatError(RomfsError):
    """Wrong magic or a header buffer that is too small."""


class RomfsBoundsError(RomfsError, IndexError):
    """A read or view falls outside the accessible byte range."""

    def __init__(self, offset, count, length):
        super().__init__(
            f"Read of 0x{count:X} bytes at 0x{offset:X} is out of range (length 0x{length:X})"
        )
        self.offset = offset
        self.count = count
        self.length = length


class RomfsCorruptionError(RomfsError):
    """The metadata tables link back to an offset that was already visited."""
