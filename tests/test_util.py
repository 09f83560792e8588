import pytest

import util


@pytest.mark.parametrize('offset, alignment, expected', [
    (0, 0x10, 0), (1, 0x10, 0x10), (0x10, 0x10, 0x10), (0x80, 0x1000, 0x1000), (0x1001, 1, 0x1001),
])
def test_align_up(offset, alignment, expected):
    assert util.align_up(offset, alignment) == expected


def test_align_up_rejects_zero():
    with pytest.raises(ValueError):
        util.align_up(4, 0)


def test_mkdirp_is_idempotent(tmp_path):
    target = tmp_path / 'a' / 'b'
    util.mkdirp(target)
    util.mkdirp(target)
    assert target.is_dir()


def test_mkdirp_over_file(tmp_path):
    target = tmp_path / 'file'
    target.write_bytes(b'')
    with pytest.raises(OSError):
        util.mkdirp(target)
