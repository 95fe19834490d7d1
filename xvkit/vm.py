"""Two-level page tables over simulated physical memory."""

from __future__ import annotations

from typing import Callable, Iterator, Optional

from xvkit.layout import (
    DEVSPACE,
    EXTMEM,
    KERNBASE,
    KERNLINK,
    NPDENTRIES,
    PGSIZE,
    PHYSTOP,
    PTE_P,
    PTE_U,
    PTE_W,
    pdx,
    pgaddr,
    pgrounddown,
    pgroundup,
    pte_addr,
    pte_flags,
    ptx,
    v2p,
)

# Executable file format constants.
ELF_MAGIC = 0x464C457F
ELF_PROG_LOAD = 1
ELF_PROG_FLAG_EXEC = 1
ELF_PROG_FLAG_WRITE = 2
ELF_PROG_FLAG_READ = 4

# Physical address of the first page frame handed out by the allocator.
FIRST_FRAME = 0x400000

_ENTRY = 4


def _u32(value: int) -> int:
    return value & 0xFFFFFFFF


class VMError(Exception):
    """A page-table operation met an inconsistent or invalid state."""


class PhysicalMemory:
    """A pool of page frames addressed by physical address."""

    def __init__(self, nframes: int) -> None:
        if nframes < 0 or FIRST_FRAME + nframes * PGSIZE > PHYSTOP:
            raise ValueError("frame count out of range")
        self._free = [FIRST_FRAME + i * PGSIZE for i in range(nframes)]
        self._frames: dict[int, bytearray] = {}

    def __len__(self) -> int:
        return len(self._frames)

    def __contains__(self, pa: int) -> bool:
        return pa in self._frames

    def kalloc(self) -> int:
        """Take a free frame and return its physical address."""
        if not self._free:
            raise MemoryError("out of physical memory")
        pa = self._free.pop()
        self._frames[pa] = bytearray(PGSIZE)
        return pa

    def kfree(self, pa: int) -> None:
        """Return a frame to the pool."""
        if self._frames.pop(pa, None) is None:
            raise VMError("kfree")
        self._free.append(pa)

    def _spans(self, pa: int, n: int) -> Iterator[tuple[bytearray, int, int]]:
        if n < 0:
            raise ValueError("length must not be negative")
        while n > 0:
            base = pgrounddown(pa)
            frame = self._frames.get(base)
            if frame is None:
                raise VMError(f"no frame at {base:#x}")
            off = pa - base
            length = min(PGSIZE - off, n)
            yield frame, off, length
            pa += length
            n -= length

    def read(self, pa: int, n: int) -> bytes:
        """Read n bytes starting at a physical address."""
        return b"".join(bytes(f[off:off + ln]) for f, off, ln in self._spans(pa, n))

    def write(self, pa: int, data: bytes) -> None:
        """Write bytes starting at a physical address."""
        data = bytes(data)
        pos = 0
        for frame, off, length in self._spans(pa, len(data)):
            frame[off:off + length] = data[pos:pos + length]
            pos += length


def _kernel_map(data: int) -> list[tuple[int, int, int, int]]:
    if not KERNLINK < data or not v2p(data) < PHYSTOP:
        raise ValueError("kernel data address out of range")
    return [
        (KERNBASE, 0, EXTMEM, PTE_W),
        (KERNLINK, v2p(KERNLINK), v2p(data), 0),
        (data, v2p(data), PHYSTOP, PTE_W),
        (DEVSPACE, DEVSPACE, 0, PTE_W),
    ]


class AddressSpace:
    """One page directory and the page tables and user pages it owns."""

    def __init__(self, memory: PhysicalMemory) -> None:
        self.memory = memory
        self.pgdir = memory.kalloc()
        memory.write(self.pgdir, bytes(PGSIZE))
        self._kernel_data: Optional[int] = None

    @classmethod
    def with_kernel(cls, memory: PhysicalMemory, data: int) -> "AddressSpace":
        """An address space holding the kernel mappings; data is where kernel data starts."""
        kmap = _kernel_map(data)
        space = cls(memory)
        space._kernel_data = data
        try:
            for virt, start, end, perm in kmap:
                space.map_pages(virt, _u32(end - start), start, perm)
        except MemoryError:
            space.free()
            raise
        return space

    def _load_entry(self, loc: int) -> int:
        return int.from_bytes(self.memory.read(loc, _ENTRY), "little")

    def _store_entry(self, loc: int, value: int) -> None:
        self.memory.write(loc, _u32(value).to_bytes(_ENTRY, "little"))

    def walk(self, va: int, alloc: bool = False) -> Optional[int]:
        """Physical address of the entry for va, creating its page table if alloc."""
        pde_loc = self.pgdir + _ENTRY * pdx(va)
        pde = self._load_entry(pde_loc)
        if pde & PTE_P:
            pgtab = pte_addr(pde)
        else:
            if not alloc:
                return None
            try:
                pgtab = self.memory.kalloc()
            except MemoryError:
                return None
            self.memory.write(pgtab, bytes(PGSIZE))
            self._store_entry(pde_loc, pgtab | PTE_P | PTE_W | PTE_U)
        return pgtab + _ENTRY * ptx(va)

    def map_pages(self, va: int, size: int, pa: int, perm: int) -> None:
        """Map the pages covering [va, va+size) to frames starting at pa."""
        if size <= 0:
            raise ValueError("mapping size must be positive")
        a = pgrounddown(va)
        last = pgrounddown(va + size - 1)
        while True:
            pte = self.walk(a, True)
            if pte is None:
                raise MemoryError("no memory for page table")
            if self._load_entry(pte) & PTE_P:
                raise VMError("remap")
            self._store_entry(pte, pa | perm | PTE_P)
            if a == last:
                break
            a = _u32(a + PGSIZE)
            pa = _u32(pa + PGSIZE)

    def init_code(self, code: bytes) -> None:
        """Place code, smaller than a page, at address 0."""
        if len(code) >= PGSIZE:
            raise VMError("inituvm: more than a page")
        mem = self.memory.kalloc()
        self.memory.write(mem, bytes(PGSIZE))
        self.map_pages(0, PGSIZE, mem, PTE_W | PTE_U)
        self.memory.write(mem, code)

    def load(
        self, addr: int, reader: Callable[[int, int], bytes], offset: int, sz: int
    ) -> None:
        """Fill mapped pages from addr with sz bytes that reader returns from offset."""
        if addr % PGSIZE:
            raise VMError("loaduvm: addr must be page aligned")
        for i in range(0, sz, PGSIZE):
            pte = self.walk(addr + i, False)
            if pte is None:
                raise VMError("loaduvm: address should exist")
            pa = pte_addr(self._load_entry(pte))
            n = min(PGSIZE, sz - i)
            chunk = reader(offset + i, n)
            if len(chunk) != n:
                raise VMError("loaduvm: short read")
            self.memory.write(pa, chunk)

    def alloc(self, oldsz: int, newsz: int) -> int:
        """Grow the user part from oldsz to newsz bytes; return the new size."""
        if newsz >= KERNBASE:
            raise VMError("size reaches kernel space")
        if newsz < oldsz:
            return oldsz
        for a in range(pgroundup(oldsz), newsz, PGSIZE):
            try:
                mem = self.memory.kalloc()
            except MemoryError:
                self.dealloc(newsz, oldsz)
                raise
            self.memory.write(mem, bytes(PGSIZE))
            try:
                self.map_pages(a, PGSIZE, mem, PTE_W | PTE_U)
            except MemoryError:
                self.dealloc(newsz, oldsz)
                self.memory.kfree(mem)
                raise
        return newsz

    def dealloc(self, oldsz: int, newsz: int) -> int:
        """Shrink the user part from oldsz to newsz bytes; return the new size."""
        if newsz >= oldsz:
            return oldsz
        a = pgroundup(newsz)
        while a < oldsz:
            pte = self.walk(a, False)
            if pte is None:
                a = _u32(pgaddr(pdx(a) + 1, 0, 0) - PGSIZE)
            else:
                entry = self._load_entry(pte)
                if entry & PTE_P:
                    pa = pte_addr(entry)
                    if pa == 0:
                        raise VMError("kfree")
                    self.memory.kfree(pa)
                    self._store_entry(pte, 0)
            a += PGSIZE
        return newsz

    def free(self) -> None:
        """Release every user page, every page table and the directory."""
        self.dealloc(KERNBASE, 0)
        for i in range(NPDENTRIES):
            pde = self._load_entry(self.pgdir + _ENTRY * i)
            if pde & PTE_P:
                self.memory.kfree(pte_addr(pde))
        self.memory.kfree(self.pgdir)

    def clear_user(self, uva: int) -> None:
        """Make the page at uva inaccessible to user code."""
        pte = self.walk(uva, False)
        if pte is None:
            raise VMError("clearpteu")
        self._store_entry(pte, self._load_entry(pte) & ~PTE_U)

    def copy(self, sz: int) -> "AddressSpace":
        """A new address space with copies of the first sz bytes of user memory."""
        if self._kernel_data is not None:
            child = type(self).with_kernel(self.memory, self._kernel_data)
        else:
            child = type(self)(self.memory)
        try:
            for i in range(0, sz, PGSIZE):
                pte = self.walk(i, False)
                if pte is None:
                    raise VMError("copyuvm: pte should exist")
                entry = self._load_entry(pte)
                if not entry & PTE_P:
                    raise VMError("copyuvm: page not present")
                mem = self.memory.kalloc()
                self.memory.write(mem, self.memory.read(pte_addr(entry), PGSIZE))
                try:
                    child.map_pages(i, PGSIZE, mem, pte_flags(entry))
                except MemoryError:
                    self.memory.kfree(mem)
                    raise
        except (MemoryError, VMError):
            child.free()
            raise
        return child

    def uva2ka(self, uva: int) -> Optional[int]:
        """Physical address of the user page holding uva, or None."""
        pte = self.walk(uva, False)
        if pte is None:
            return None
        entry = self._load_entry(pte)
        if not entry & PTE_P or not entry & PTE_U:
            return None
        return pte_addr(entry)

    def copy_out(self, va: int, data: bytes) -> None:
        """Copy data to user address va."""
        data = bytes(data)
        pos = 0
        while pos < len(data):
            va0 = pgrounddown(va)
            pa0 = self.uva2ka(va0)
            if pa0 is None:
                raise VMError(f"user address {va0:#x} not mapped")
            n = min(PGSIZE - (va - va0), len(data) - pos)
            self.memory.write(pa0 + (va - va0), data[pos:pos + n])
            pos += n
            va = va0 + PGSIZE