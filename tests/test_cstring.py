import io

import pytest

from xvkit.cstring import (
    atoi,
    gets,
    memcmp,
    memmove,
    memset,
    safestrcpy,
    strchr,
    strcmp,
    strlen,
    strncmp,
    strncpy,
)


def test_memset_fills_prefix():
    buf = bytearray(8)
    result = memset(buf, ord("a"), 5)
    assert result is buf
    assert buf[:5] == b"a" * 5
    assert buf[5:] == bytes(3)


def test_memset_uses_low_byte():
    buf = bytearray(4)
    memset(buf, 0x100 | ord("A"), 4)
    assert buf == bytearray(b"A" * 4)


def test_memset_out_of_range():
    with pytest.raises(ValueError):
        memset(bytearray(2), 0, 3)


def test_memcmp():
    assert memcmp(b"abc", b"abc", 3) == 0
    assert memcmp(b"abc", b"abd", 3) < 0
    assert memcmp(b"abd", b"abc", 3) > 0
    assert memcmp(b"abc", b"abd", 2) == 0
    assert memcmp(b"\xff", b"\x00", 1) > 0


def test_memcmp_out_of_range():
    with pytest.raises(ValueError):
        memcmp(b"ab", b"abc", 3)


@pytest.mark.parametrize("dst,src,n", [(2, 0, 4), (0, 2, 4), (1, 1, 3), (3, 0, 3)])
def test_memmove_overlap(dst, src, n):
    original = b"abcdef"
    buf = bytearray(original)
    memmove(buf, dst, src, n)
    assert buf[dst:dst + n] == original[src:src + n]
    for i, byte in enumerate(buf):
        if not dst <= i < dst + n:
            assert byte == original[i]


def test_memmove_out_of_range():
    with pytest.raises(ValueError):
        memmove(bytearray(4), 2, 0, 3)


def test_strncmp():
    assert strncmp(b"abc", b"abd", 2) == 0
    assert strncmp(b"abc", b"abd", 3) < 0
    assert strncmp(b"a\0x", b"a\0y", 3) == 0
    assert strncmp("abc", "abc", 10) == 0
    assert strncmp(b"ab", b"abc", 3) < 0


def test_strcmp():
    assert strcmp(b"hello", b"hello") == 0
    assert strcmp(b"abc", b"abd") < 0
    assert strcmp(b"b", b"a") > 0
    assert strcmp(b"\xff", b"a") > 0
    assert strcmp(b"x\0junk", b"x") == 0


def test_strncpy_pads_with_nul():
    out = strncpy(b"hi", 5)
    assert len(out) == 5
    assert out.startswith(b"hi")
    assert out[2:] == bytes(3)


def test_strncpy_truncates_without_terminator():
    assert strncpy(b"hello", 3) == b"hel"
    assert strncpy(b"hello", 0) == b""


def test_safestrcpy():
    assert safestrcpy(b"hello", 3) == b"he"
    assert safestrcpy(b"hi", 10) == b"hi"
    assert safestrcpy(b"x", 0) == b""
    assert safestrcpy(b"x", 1) == b""


def test_strlen():
    assert strlen(b"abc\0def") == 3
    assert strlen("") == 0
    assert strlen(b"abc") == 3


def test_strchr():
    assert strchr(b" \t\r\n\v", " ") == 0
    assert strchr(b"abc", "c") == 2
    assert strchr(b"abc", ord("b")) == 1
    assert strchr(b"abc", "z") is None
    assert strchr(b"ab\0c", "c") is None
    assert strchr(b"abc", 0) is None


def test_atoi():
    assert atoi("123") == 123
    assert atoi(b"12ab") == 12
    assert atoi("-5") == 0
    assert atoi(" 7") == 0
    assert atoi("") == 0


def test_gets_reads_lines():
    stream = io.BytesIO(b"line one\nrest")
    assert gets(stream, 100) == b"line one\n"
    assert gets(stream, 100) == b"rest"
    assert gets(stream, 100) == b""


def test_gets_stops_at_carriage_return():
    stream = io.BytesIO(b"ab\rcd")
    assert gets(stream, 100) == b"ab\r"
    assert gets(stream, 100) == b"cd"


def test_gets_respects_limit():
    stream = io.BytesIO(b"abcdef")
    assert gets(stream, 4) == b"abc"
    assert gets(stream, 4) == b"def"