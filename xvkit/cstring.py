"""NUL-terminated string and raw memory helpers with C semantics."""

from __future__ import annotations

import re
from itertools import count
from typing import BinaryIO, Iterable, Optional, Union

BytesLike = Union[bytes, bytearray, memoryview, str]

_DIGITS = re.compile(rb"[0-9]*")


def _as_bytes(s: BytesLike) -> bytes:
    if isinstance(s, str):
        return s.encode("latin-1")
    return bytes(s)


def _cstr(s: BytesLike) -> bytes:
    """Contents of a C string: everything before the first NUL."""
    data = _as_bytes(s)
    end = data.find(b"\0")
    return data if end < 0 else data[:end]


def _at(s: bytes, i: int) -> int:
    return s[i] if i < len(s) else 0


def _char_code(c: Union[int, str, bytes]) -> int:
    if isinstance(c, int):
        return c & 0xFF
    data = _as_bytes(c)
    if len(data) != 1:
        raise ValueError("expected a single character")
    return data[0]


def _check_span(buf_len: int, start: int, n: int) -> None:
    if n < 0 or start < 0 or start + n > buf_len:
        raise ValueError("range outside buffer")


def memset(buf: bytearray, c: int, n: int) -> bytearray:
    """Fill the first n bytes of buf with the low byte of c."""
    _check_span(len(buf), 0, n)
    buf[:n] = bytes([c & 0xFF]) * n
    return buf


def memcmp(a: BytesLike, b: BytesLike, n: int) -> int:
    """Compare n bytes; return the difference of the first differing pair."""
    a, b = _as_bytes(a), _as_bytes(b)
    if n < 0 or n > len(a) or n > len(b):
        raise ValueError("range outside buffer")
    for x, y in zip(a[:n], b[:n]):
        if x != y:
            return x - y
    return 0


def memmove(buf: bytearray, dst: int, src: int, n: int) -> bytearray:
    """Copy n bytes inside buf from offset src to offset dst; overlap is safe."""
    _check_span(len(buf), src, n)
    _check_span(len(buf), dst, n)
    buf[dst:dst + n] = buf[src:src + n]
    return buf


def _compare(p: BytesLike, q: BytesLike, positions: Iterable[int]) -> int:
    p, q = _as_bytes(p), _as_bytes(q)
    for i in positions:
        cp, cq = _at(p, i), _at(q, i)
        if cp == 0 or cp != cq:
            return cp - cq
    return 0


def strncmp(p: BytesLike, q: BytesLike, n: int) -> int:
    """Compare at most n characters of two C strings."""
    return _compare(p, q, range(max(n, 0)))


def strcmp(p: BytesLike, q: BytesLike) -> int:
    """Compare two C strings."""
    return _compare(p, q, count())


def strncpy(t: BytesLike, n: int) -> bytes:
    """The n bytes strncpy writes: t, then NUL padding; no terminator if t fills n."""
    if n <= 0:
        return b""
    return (_cstr(t) + bytes(n))[:n]


def safestrcpy(t: BytesLike, n: int) -> bytes:
    """The string left in an n-byte buffer: at most n-1 characters of t."""
    if n <= 0:
        return b""
    return _cstr(t)[: n - 1]


def strlen(s: BytesLike) -> int:
    """Number of characters before the first NUL."""
    return len(_cstr(s))


def strchr(s: BytesLike, c: Union[int, str, bytes]) -> Optional[int]:
    """Index of the first c in the C string s, or None."""
    code = _char_code(c)
    index = _cstr(s).find(bytes([code]))
    return None if index < 0 else index


def atoi(s: BytesLike) -> int:
    """Value of the leading decimal digits of s; no sign or spaces."""
    match = _DIGITS.match(_cstr(s))
    digits = match.group() if match else b""
    return int(digits) if digits else 0


def gets(stream: BinaryIO, max_len: int) -> bytes:
    """Read one line of at most max_len-1 bytes, keeping the newline or return."""
    line = bytearray()
    while len(line) + 1 < max_len:
        ch = stream.read(1)
        if not ch:
            break
        ch = _as_bytes(ch)
        line += ch
        if ch in (b"\n", b"\r"):
            break
    return bytes(line)