"""A first-fit free-list allocator over a simulated, growable heap."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

# Size of one block header; block sizes are counted in these units.
HEADER_SIZE = 8
# The smallest number of units requested from sbrk at a time.
MIN_UNITS = 4096

# The sentinel header of the circular free list sits just below the heap.
_BASE = -HEADER_SIZE


@dataclass
class _Header:
    next: int
    size: int


class Heap:
    """A heap that grows with sbrk up to a fixed limit and hands out blocks.

    Addresses are byte offsets from the start of the heap.  The free list is
    kept in address order and adjacent free blocks are merged on release.
    """

    def __init__(self, limit: int) -> None:
        if limit < 0:
            raise ValueError("heap limit must not be negative")
        self.limit = limit
        self._brk = 0
        self._headers: dict[int, _Header] = {}
        self._freep: Optional[int] = None
        self._allocated: set[int] = set()

    def sbrk(self, n: int) -> int:
        """Move the break by n bytes and return the old break."""
        new = self._brk + n
        if new < 0 or new > self.limit:
            raise MemoryError(f"cannot move break by {n} bytes")
        old, self._brk = self._brk, new
        return old

    def _morecore(self, nunits: int) -> int:
        nu = max(nunits, MIN_UNITS)
        hp = self.sbrk(nu * HEADER_SIZE)
        self._headers[hp] = _Header(0, nu)
        self._release(hp)
        assert self._freep is not None
        return self._freep

    def malloc(self, nbytes: int) -> int:
        """Allocate nbytes and return the address of the usable space."""
        if nbytes < 0:
            raise ValueError("size must not be negative")
        nunits = (nbytes + HEADER_SIZE - 1) // HEADER_SIZE + 1
        if self._freep is None:
            self._headers[_BASE] = _Header(_BASE, 0)
            self._freep = _BASE
        prevp = self._freep
        p = self._headers[prevp].next
        while True:
            block = self._headers[p]
            if block.size >= nunits:
                if block.size == nunits:
                    self._headers[prevp].next = block.next
                else:
                    block.size -= nunits
                    p += block.size * HEADER_SIZE
                    self._headers[p] = _Header(0, nunits)
                self._freep = prevp
                addr = p + HEADER_SIZE
                self._allocated.add(addr)
                return addr
            if p == self._freep:
                p = self._morecore(nunits)
            prevp, p = p, self._headers[p].next

    def free(self, addr: int) -> None:
        """Return a block obtained from malloc to the free list."""
        if addr not in self._allocated:
            raise ValueError(f"address {addr} was not allocated")
        self._allocated.remove(addr)
        self._release(addr - HEADER_SIZE)

    def _release(self, bp: int) -> None:
        headers = self._headers
        assert self._freep is not None
        p = self._freep
        while not (p < bp < headers[p].next):
            if p >= headers[p].next and (bp > p or bp < headers[p].next):
                break
            p = headers[p].next
        block = headers[bp]
        here = headers[p]
        following = here.next
        if bp + block.size * HEADER_SIZE == following:
            block.size += headers[following].size
            block.next = headers[following].next
            del headers[following]
        else:
            block.next = following
        if p + here.size * HEADER_SIZE == bp:
            here.size += block.size
            here.next = block.next
            del headers[bp]
        else:
            here.next = bp
        self._freep = p

    def free_blocks(self) -> list[tuple[int, int]]:
        """The free blocks as (header address, size in bytes), in address order."""
        if self._freep is None:
            return []
        blocks = []
        p = self._headers[_BASE].next
        while p != _BASE:
            block = self._headers[p]
            blocks.append((p, block.size * HEADER_SIZE))
            p = block.next
        return blocks