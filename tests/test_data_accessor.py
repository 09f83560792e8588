import pytest

from data_accessor import BinaryDataView, BinaryFile, InMemoryBinaryFile
from romfs_errors import RomfsBoundsError, RomfsError


def test_read_bytes_and_ints():
    data = InMemoryBinaryFile(b'\x01\x00\x00\x00\xff\xff\xff\xff' + (5).to_bytes(8, 'little'))
    assert data.length == 16
    assert len(data) == 16
    assert data.read_int32(0) == 1
    assert data.read_int32(4) == -1
    assert data.read_uint32(4) == 0xFFFFFFFF
    assert data.read_int64(8) == 5


def test_out_of_range_read():
    data = InMemoryBinaryFile(b'abcd')
    with pytest.raises(RomfsBoundsError):
        data.read_bytes(2, 3)
    with pytest.raises(RomfsBoundsError):
        data.read_bytes(-1, 1)
    with pytest.raises(RomfsError):
        data.read_int32(1)


def test_fixed_string():
    data = InMemoryBinaryFile(b'IVFC' + 'név'.encode('utf-16-le'))
    assert data.read_fixed_string(0, 4, 'ascii') == 'IVFC'
    assert data.read_fixed_string(4, 6, 'utf-16-le') == 'név'


def test_views_are_bounded_and_compose():
    data = InMemoryBinaryFile(bytes(range(32)))
    view = data.get_data_reference(8, 16)
    assert view.length == 16
    assert view.read_bytes(0, 2) == b'\x08\x09'

    inner = view.get_data_reference(4, 4)
    assert isinstance(inner, BinaryDataView)
    assert inner.parent is data
    assert inner.offset == 12
    assert inner.read_all() == bytes(range(12, 16))

    with pytest.raises(RomfsBoundsError):
        view.read_bytes(15, 2)
    with pytest.raises(RomfsBoundsError):
        view.get_data_reference(10, 10)


def test_empty_view():
    data = InMemoryBinaryFile(b'abcd')
    assert data.get_data_reference(4, 0).read_all() == b''


def test_binary_file(tmp_path):
    path = tmp_path / 'data.bin'
    path.write_bytes(b'0123456789')
    with BinaryFile.open(path) as data:
        assert data.length == 10
        assert data.read_bytes(3, 3) == b'345'
        assert data.get_data_reference(5, 5).read_all() == b'56789'


def test_binary_file_empty(tmp_path):
    path = tmp_path / 'empty.bin'
    path.write_bytes(b'')
    with BinaryFile(path) as data:
        assert data.length == 0
        with pytest.raises(RomfsBoundsError):
            data.read_bytes(0, 1)
