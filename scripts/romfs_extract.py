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
Extract a RomFS tree to a destination filesystem.

Destination directories are created by the calling thread in pre-order, so a
directory always exists before anything is written into it. File writes are
handed to a bounded thread pool. Sibling writes finish in no particular
order. A failed write does not stop the others. The first error is raised
once every submitted write has completed, and already written files are left
in place.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path, PureWindowsPath
from typing import Callable, Dict, List, Optional, Union

import util
from romfs import DirectoryMetadata, FileMetadata, RomfsConfig
from romfs_errors import RomfsCorruptionError

logger = logging.getLogger(__name__)


class ExtractionProgress:
    """Thread-safe file counters for a running extraction."""
    def __init__(self, on_progress: Optional[Callable[['ExtractionProgress'], None]] = None):
        self._lock = threading.Lock()
        self._total_file_count = 0
        self._extracted_file_count = 0
        self.on_progress = on_progress

    @property
    def total_file_count(self) -> int:
        return self._total_file_count

    @total_file_count.setter
    def total_file_count(self, value: int):
        with self._lock:
            self._total_file_count = value
        self._notify()

    @property
    def extracted_file_count(self) -> int:
        return self._extracted_file_count

    def increment_extracted_file_count(self) -> int:
        with self._lock:
            self._extracted_file_count += 1
            count = self._extracted_file_count
        self._notify()
        return count

    @property
    def progress(self) -> float:
        if self._total_file_count == 0:
            return 1.0
        return self._extracted_file_count / self._total_file_count

    @property
    def is_completed(self) -> bool:
        return self._extracted_file_count >= self._total_file_count

    def _notify(self):
        if self.on_progress is not None:
            self.on_progress(self)

    def __repr__(self):
        return f"ExtractionProgress({self._extracted_file_count}/{self._total_file_count})"


class IOProvider:
    """Destination filesystem used by the extractor."""

    def directory_exists(self, path) -> bool:
        raise NotImplementedError

    def create_directory(self, path):
        """Create path. Must not fail if it already exists."""
        raise NotImplementedError

    def write_all_bytes(self, path, data: bytes):
        raise NotImplementedError


class PhysicalIOProvider(IOProvider):
    """The local filesystem."""

    def directory_exists(self, path):
        return Path(path).is_dir()

    def create_directory(self, path):
        util.mkdirp(path)

    def write_all_bytes(self, path, data):
        Path(path).write_bytes(data)


class MemoryIOProvider(IOProvider):
    """In-memory filesystem, keyed by POSIX-style path strings."""

    def __init__(self):
        self._lock = threading.Lock()
        self.directories = set()
        self.files: Dict[str, bytes] = {}

    @staticmethod
    def _key(path):
        return Path(path).as_posix()

    def directory_exists(self, path):
        with self._lock:
            return self._key(path) in self.directories

    def create_directory(self, path):
        key = Path(path)
        with self._lock:
            self.directories.add(key.as_posix())
            self.directories.update(parent.as_posix() for parent in key.parents if parent != Path('.'))

    def write_all_bytes(self, path, data):
        key = Path(path)
        with self._lock:
            if key.parent != Path('.') and key.parent.as_posix() not in self.directories:
                raise FileNotFoundError(f"No such directory: {key.parent.as_posix()}")
            self.files[key.as_posix()] = bytes(data)


def _check_entry_name(name, kind):
    # separators cover absolute POSIX and UNC paths, the drive check covers "C:name"
    if not name or name in (".", "..") or any(c in name for c in "/\\\0") or PureWindowsPath(name).drive:
        raise RomfsCorruptionError(f"Unsafe {kind} name in RomFS: {name!r}")


def check_entry_names(root_directory: DirectoryMetadata, root_files: List[FileMetadata]):
    """Reject names that would leave the destination directory."""
    for f in root_files:
        _check_entry_name(f.name, 'file')
    stack = [root_directory]
    while stack:
        directory = stack.pop()
        for f in directory.child_files:
            _check_entry_name(f.name, 'file')
        for child in directory.child_directories:
            _check_entry_name(child.name, 'directory')
            stack.append(child)


def _ensure_directory(provider, path):
    if not provider.directory_exists(path):
        logger.debug('Creating %s', path)
        provider.create_directory(path)


def _write_file(provider, path, metadata: FileMetadata, progress):
    provider.write_all_bytes(path, metadata.get_data_reference().read_all())
    logger.debug('Wrote %s (0x%X bytes)', path, metadata.file_data_length)
    if progress is not None:
        progress.increment_extracted_file_count()


def extract_tree(root_directory: DirectoryMetadata,
                 root_files: List[FileMetadata],
                 directory_name: Union[str, Path],
                 provider: Optional[IOProvider] = None,
                 progress: Optional[ExtractionProgress] = None,
                 config: Optional[RomfsConfig] = None):
    """
    Write root_files and everything under root_directory into directory_name.

    Args:
        root_directory: Root of the rebuilt directory tree
        root_files:     Files stored in the root file slot
        directory_name: Destination root, created if missing
        provider:       Destination filesystem (default: PhysicalIOProvider)
        progress:       Optional ExtractionProgress, its total is set before any write
        config:         Optional RomfsConfig, max_workers bounds the write pool

    Raises:
        OSError: the first destination failure, after all pending writes finished
        RomfsError: if file data lies outside the level data
        RomfsCorruptionError: if a name is empty, a path component, or absolute; nothing is written
    """
    config = config or RomfsConfig()
    provider = provider or PhysicalIOProvider()
    root = Path(directory_name)
    check_entry_names(root_directory, root_files)

    if progress is not None:
        progress.total_file_count = len(root_files) + root_directory.count_child_files()

    logger.info('Extracting to %s with %d workers', root, config.worker_count)
    _ensure_directory(provider, root)

    failures = []
    with ThreadPoolExecutor(max_workers=config.worker_count) as executor:
        futures = [executor.submit(_write_file, provider, root / f.name, f, progress) for f in root_files]
        try:
            stack = [(root_directory, root)]
            while stack:
                directory, path = stack.pop()
                futures.extend(executor.submit(_write_file, provider, path / f.name, f, progress)
                               for f in directory.child_files)
                for child in directory.child_directories:
                    child_path = path / child.name
                    _ensure_directory(provider, child_path)
                    stack.append((child, child_path))
        except Exception as e:
            failures.append(e)

        for future in as_completed(futures):
            error = future.exception()
            if error is not None:
                failures.append(error)

    if failures:
        for error in failures[1:]:
            logger.error('Extraction error: %s', error)
        raise failures[0]

    logger.info('Extracted %d files to %s', len(futures), root)


def extract_files(romfs, directory_name, provider=None, progress=None, config=None):
    """Extract every file of an opened RomFs into directory_name."""
    extract_tree(romfs.root_directory, romfs.root_files, directory_name,
                 provider=provider, progress=progress, config=config or romfs.config)
