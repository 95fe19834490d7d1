"""x86 memory-layout constants, address arithmetic and descriptor encoding."""

from __future__ import annotations

from dataclasses import dataclass, field, fields

UINT_MASK = 0xFFFFFFFF
USHORT_MASK = 0xFFFF
UCHAR_MASK = 0xFF

# Eflags register
FL_IF = 0x00000200

# Control register flags
CR0_PE = 0x00000001
CR0_WP = 0x00010000
CR0_PG = 0x80000000
CR4_PSE = 0x00000010

# Segment selectors
SEG_KCODE = 1
SEG_KDATA = 2
SEG_UCODE = 3
SEG_UDATA = 4
SEG_TSS = 5
NSEGS = 6

DPL_USER = 0x3

# Application segment type bits
STA_X = 0x8
STA_W = 0x2
STA_R = 0x2

# System segment type bits
STS_T32A = 0x9
STS_IG32 = 0xE
STS_TG32 = 0xF

# Paging
NPDENTRIES = 1024
NPTENTRIES = 1024
PGSIZE = 4096
PTXSHIFT = 12
PDXSHIFT = 22

PTE_P = 0x001
PTE_W = 0x002
PTE_U = 0x004
PTE_PS = 0x080

# Memory layout
EXTMEM = 0x100000
PHYSTOP = 0xE000000
DEVSPACE = 0xFE000000
KERNBASE = 0x80000000
KERNLINK = KERNBASE + EXTMEM

# Kernel parameters
NPROC = 64
KSTACKSIZE = 4096
NCPU = 8
NOFILE = 16
NFILE = 100
NINODE = 50
NDEV = 10
ROOTDEV = 1
MAXARG = 32
MAXOPBLOCKS = 10
LOGSIZE = MAXOPBLOCKS * 3
NBUF = MAXOPBLOCKS * 3
FSSIZE = 1000

# An all-zero descriptor, as emitted for the first GDT slot.
SEG_NULLASM = bytes(8)


def _u32(value: int) -> int:
    return value & UINT_MASK


def v2p(addr: int) -> int:
    """Kernel virtual address to physical address."""
    return _u32(addr - KERNBASE)


def p2v(addr: int) -> int:
    """Physical address to kernel virtual address."""
    return _u32(addr + KERNBASE)


def pdx(va: int) -> int:
    """Page directory index of a virtual address."""
    return (_u32(va) >> PDXSHIFT) & 0x3FF


def ptx(va: int) -> int:
    """Page table index of a virtual address."""
    return (_u32(va) >> PTXSHIFT) & 0x3FF


def pgaddr(d: int, t: int, o: int) -> int:
    """Build a virtual address from directory index, table index and offset."""
    return _u32((d << PDXSHIFT) | (t << PTXSHIFT) | o)


def pgroundup(sz: int) -> int:
    """Round up to a page boundary."""
    return _u32(sz + PGSIZE - 1) & ~(PGSIZE - 1) & UINT_MASK


def pgrounddown(a: int) -> int:
    """Round down to a page boundary."""
    return _u32(a) & ~(PGSIZE - 1) & UINT_MASK


def pte_addr(pte: int) -> int:
    """Physical address held in a page table or directory entry."""
    return _u32(pte) & ~0xFFF & UINT_MASK


def pte_flags(pte: int) -> int:
    """Flag bits of a page table or directory entry."""
    return _u32(pte) & 0xFFF


def _bits(width: int):
    return field(default=0, metadata={"bits": width})


def _mask_fields(record) -> None:
    for f in fields(record):
        setattr(record, f.name, getattr(record, f.name) & ((1 << f.metadata["bits"]) - 1))


def _pack_fields(record) -> bytes:
    value = 0
    shift = 0
    for f in fields(record):
        width = f.metadata["bits"]
        value |= (getattr(record, f.name) & ((1 << width) - 1)) << shift
        shift += width
    return value.to_bytes(shift // 8, "little")


@dataclass
class SegDesc:
    """A segment descriptor."""

    lim_15_0: int = _bits(16)
    base_15_0: int = _bits(16)
    base_23_16: int = _bits(8)
    type: int = _bits(4)
    s: int = _bits(1)
    dpl: int = _bits(2)
    p: int = _bits(1)
    lim_19_16: int = _bits(4)
    avl: int = _bits(1)
    rsv1: int = _bits(1)
    db: int = _bits(1)
    g: int = _bits(1)
    base_31_24: int = _bits(8)

    def __post_init__(self) -> None:
        _mask_fields(self)

    def pack(self) -> bytes:
        """Encode the descriptor as its 8-byte in-memory form."""
        return _pack_fields(self)


def seg(type_: int, base: int, lim: int, dpl: int) -> SegDesc:
    """A normal 32-bit segment with a limit in 4 KiB units."""
    base = _u32(base)
    lim = _u32(lim)
    return SegDesc(
        lim_15_0=(lim >> 12) & 0xFFFF,
        base_15_0=base & 0xFFFF,
        base_23_16=(base >> 16) & 0xFF,
        type=type_,
        s=1,
        dpl=dpl,
        p=1,
        lim_19_16=lim >> 28,
        avl=0,
        rsv1=0,
        db=1,
        g=1,
        base_31_24=base >> 24,
    )


def seg16(type_: int, base: int, lim: int, dpl: int) -> SegDesc:
    """A segment with a byte-granular limit."""
    base = _u32(base)
    lim = _u32(lim)
    return SegDesc(
        lim_15_0=lim & 0xFFFF,
        base_15_0=base & 0xFFFF,
        base_23_16=(base >> 16) & 0xFF,
        type=type_,
        s=1,
        dpl=dpl,
        p=1,
        lim_19_16=lim >> 16,
        avl=0,
        rsv1=0,
        db=1,
        g=0,
        base_31_24=base >> 24,
    )


def seg_asm(type_: int, base: int, lim: int) -> bytes:
    """The 8 bytes the boot code emits for a flat 32-bit segment."""
    base = _u32(base)
    lim = _u32(lim)
    words = ((lim >> 12) & 0xFFFF, base & 0xFFFF)
    tail = bytes(
        (
            (base >> 16) & 0xFF,
            (0x90 | type_) & 0xFF,
            (0xC0 | ((lim >> 28) & 0xF)) & 0xFF,
            (base >> 24) & 0xFF,
        )
    )
    return b"".join(w.to_bytes(2, "little") for w in words) + tail


@dataclass
class GateDesc:
    """An interrupt or trap gate descriptor."""

    off_15_0: int = _bits(16)
    cs: int = _bits(16)
    args: int = _bits(5)
    rsv1: int = _bits(3)
    type: int = _bits(4)
    s: int = _bits(1)
    dpl: int = _bits(2)
    p: int = _bits(1)
    off_31_16: int = _bits(16)

    def __post_init__(self) -> None:
        _mask_fields(self)

    def pack(self) -> bytes:
        """Encode the gate as its 8-byte in-memory form."""
        return _pack_fields(self)


def set_gate(istrap: bool, sel: int, off: int, dpl: int) -> GateDesc:
    """Build a trap gate (istrap true) or an interrupt gate."""
    off = _u32(off)
    return GateDesc(
        off_15_0=off & 0xFFFF,
        cs=sel,
        args=0,
        rsv1=0,
        type=STS_TG32 if istrap else STS_IG32,
        s=0,
        dpl=dpl,
        p=1,
        off_31_16=off >> 16,
    )