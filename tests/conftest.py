import pytest

from romfs_builder import Dir, build_tree_image


@pytest.fixture
def sample_image():
    """One root file A.txt (4 bytes) and sub/B.bin (0 bytes)."""
    return build_tree_image(
        root_files=[('A.txt', b'abcd')],
        root_dirs=[Dir('sub', files=[('B.bin', b'')])],
    )


@pytest.fixture
def nested_image():
    return build_tree_image(
        root_files=[('readme.txt', b'hello'), ('icon.bin', b'\x01\x02\x03')],
        root_dirs=[
            Dir('a', files=[('a1.bin', b'A1'), ('a2.bin', b'A2' * 40)], dirs=[
                Dir('deep', files=[('leaf.txt', b'leaf')]),
                Dir('empty'),
            ]),
            Dir('b', files=[('b1.bin', b'B' * 33)]),
            Dir('データ', files=[('日本.txt', b'jp')]),
        ],
    )


@pytest.fixture
def sample_image_path(tmp_path, sample_image):
    path = tmp_path / 'romfs.bin'
    path.write_bytes(sample_image)
    return path
