"""Count lines, words and bytes."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from functools import partial
from typing import BinaryIO, Optional, Sequence

CHUNK = 512
# A NUL byte separates words as well: the separator test matches the terminator.
SEPARATORS = frozenset(b" \r\t\n\v\0")


@dataclass(frozen=True)
class Counts:
    """Line, word and byte totals."""

    lines: int = 0
    words: int = 0
    chars: int = 0


def wc(stream: BinaryIO) -> Counts:
    """Count the lines, words and bytes of a binary stream."""
    lines = words = chars = 0
    inword = False
    for chunk in iter(partial(stream.read, CHUNK), b""):
        chars += len(chunk)
        lines += chunk.count(b"\n")
        for byte in chunk:
            if byte in SEPARATORS:
                inword = False
            elif not inword:
                words += 1
                inword = True
    return Counts(lines, words, chars)


def format_counts(counts: Counts, name: str) -> str:
    """The report line for one input."""
    return f"{counts.lines} {counts.words} {counts.chars} {name}"


def _report(stream: BinaryIO, name: str) -> bool:
    try:
        counts = wc(stream)
    except OSError:
        print("wc: read error")
        return False
    print(format_counts(counts, name))
    return True


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Report counts for each named file, or for standard input."""
    names = list(sys.argv[1:] if argv is None else argv)
    if not names:
        stdin = getattr(sys.stdin, "buffer", sys.stdin)
        return 0 if _report(stdin, "") else 1
    for name in names:
        try:
            stream = open(name, "rb")
        except OSError:
            print(f"wc: cannot open {name}")
            return 1
        with stream:
            if not _report(stream, name):
                return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())