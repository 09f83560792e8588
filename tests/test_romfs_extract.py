import threading

import pytest

from romfs import RomFs, RomfsConfig
from romfs_builder import Dir, build_tree_image
from romfs_errors import RomfsCorruptionError
from romfs_extract import (ExtractionProgress, MemoryIOProvider, PhysicalIOProvider,
                           extract_files, extract_tree)


def listing(root):
    return sorted(p.relative_to(root).as_posix() for p in root.rglob('*'))


def test_extract_sample(tmp_path, sample_image):
    image = RomFs.open(sample_image)
    destination = tmp_path / 'root'
    progress = ExtractionProgress()

    image.extract_files(destination, progress=progress)

    assert listing(destination) == ['A.txt', 'sub', 'sub/B.bin']
    assert (destination / 'A.txt').read_bytes() == b'abcd'
    assert (destination / 'sub' / 'B.bin').read_bytes() == b''
    assert progress.total_file_count == 2
    assert progress.extracted_file_count == 2
    assert progress.is_completed
    assert progress.progress == 1.0


def test_extract_into_existing_directory(tmp_path, sample_image):
    destination = tmp_path / 'root'
    (destination / 'sub').mkdir(parents=True)
    extract_files(RomFs.open(sample_image), destination)
    assert listing(destination) == ['A.txt', 'sub', 'sub/B.bin']


def test_extract_nested_to_memory(nested_image):
    image = RomFs.open(nested_image)
    provider = MemoryIOProvider()
    progress = ExtractionProgress()

    extract_tree(image.root_directory, image.root_files, 'out', provider=provider, progress=progress,
                 config=RomfsConfig(max_workers=2))

    assert provider.files == {
        'out/readme.txt': b'hello',
        'out/icon.bin': b'\x01\x02\x03',
        'out/a/a1.bin': b'A1',
        'out/a/a2.bin': b'A2' * 40,
        'out/a/deep/leaf.txt': b'leaf',
        'out/b/b1.bin': b'B' * 33,
        'out/データ/日本.txt': b'jp',
    }
    assert {'out', 'out/a', 'out/a/deep', 'out/a/empty', 'out/b', 'out/データ'} <= provider.directories
    assert (progress.total_file_count, progress.extracted_file_count) == (7, 7)


def test_extract_many_siblings(tmp_path):
    files = [(f'f{i:03d}.bin', bytes([i]) * i) for i in range(120)]
    image = RomFs.open(build_tree_image(root_dirs=[Dir('flat', files=files)]))
    progress = ExtractionProgress()

    image.extract_files(tmp_path / 'out', PhysicalIOProvider(), progress)

    for name, data in files:
        assert (tmp_path / 'out' / 'flat' / name).read_bytes() == data
    assert progress.extracted_file_count == 120


class FailingProvider(MemoryIOProvider):
    def __init__(self, failing_name):
        super().__init__()
        self.failing_name = failing_name

    def write_all_bytes(self, path, data):
        if path.name == self.failing_name:
            raise PermissionError(f"denied: {path}")
        super().write_all_bytes(path, data)


def test_write_failure_is_raised_after_other_writes(nested_image):
    image = RomFs.open(nested_image)
    provider = FailingProvider('a1.bin')
    progress = ExtractionProgress()

    with pytest.raises(PermissionError):
        image.extract_files('out', provider=provider, progress=progress)

    assert 'out/a/a1.bin' not in provider.files
    assert provider.files['out/b/b1.bin'] == b'B' * 33
    assert provider.files['out/readme.txt'] == b'hello'
    assert progress.total_file_count == 7
    assert progress.extracted_file_count == 6


class FailingDirectoryProvider(MemoryIOProvider):
    def create_directory(self, path):
        if path.name == 'b':
            raise OSError("disk full")
        super().create_directory(path)


def test_directory_failure_is_raised(nested_image):
    image = RomFs.open(nested_image)
    provider = FailingDirectoryProvider()

    with pytest.raises(OSError, match="disk full"):
        image.extract_files('out', provider=provider)

    assert provider.files['out/readme.txt'] == b'hello'
    assert 'out/b/b1.bin' not in provider.files


def test_progress_counts_concurrently():
    seen = []
    progress = ExtractionProgress(on_progress=lambda token: seen.append(token.extracted_file_count))
    progress.total_file_count = 800

    threads = [threading.Thread(target=lambda: [progress.increment_extracted_file_count() for _ in range(100)])
               for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert progress.extracted_file_count == 800
    assert progress.is_completed
    assert len(seen) == 801


def test_progress_fraction():
    progress = ExtractionProgress()
    progress.total_file_count = 4
    progress.increment_extracted_file_count()
    assert progress.progress == 0.25
    assert not progress.is_completed


def test_memory_provider_requires_parent():
    provider = MemoryIOProvider()
    with pytest.raises(FileNotFoundError):
        provider.write_all_bytes('missing/file.bin', b'')
    provider.create_directory('a/b')
    assert provider.directory_exists('a')
    provider.write_all_bytes('a/b/file.bin', b'x')
    assert provider.files['a/b/file.bin'] == b'x'


@pytest.mark.parametrize('root_files, root_dirs', [
    ([], [Dir('..', files=[('escaped.bin', b'pwn')])]),
    ([('../escaped.bin', b'pwn')], []),
    ([('ok.txt', b'ok')], [Dir('sub', files=[('/tmp/escaped.bin', b'pwn')])]),
    ([], [Dir('sub', dirs=[Dir('.', files=[('x.bin', b'x')])])]),
    ([], [Dir('', files=[('x.bin', b'x')])]),
    ([], [Dir('sub', files=[('', b'x')])]),
    ([('a\\..\\..\\escaped.bin', b'pwn')], []),
    ([('C:escaped.bin', b'pwn')], []),
    ([('nul\0.bin', b'pwn')], []),
])
def test_unsafe_names_are_rejected(tmp_path, root_files, root_dirs):
    image = RomFs.open(build_tree_image(root_files=root_files, root_dirs=root_dirs))
    destination = tmp_path / 'out'
    progress = ExtractionProgress()

    with pytest.raises(RomfsCorruptionError):
        image.extract_files(destination, progress=progress)

    assert listing(tmp_path) == []
    assert not destination.exists()
    assert progress.extracted_file_count == 0


def test_unsafe_names_rejected_in_memory():
    image = RomFs.open(build_tree_image(root_dirs=[Dir('..', files=[('escaped.bin', b'pwn')])]))
    provider = MemoryIOProvider()
    with pytest.raises(RomfsCorruptionError, match=r"directory name"):
        image.extract_files('out', provider=provider)
    assert provider.files == {}
    assert provider.directories == set()
