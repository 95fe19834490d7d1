import pytest

from xvkit.layout import (
    DEVSPACE,
    EXTMEM,
    KERNBASE,
    KERNLINK,
    PGSIZE,
    PTE_P,
    PTE_U,
    PTE_W,
    pte_addr,
)
from xvkit.vm import AddressSpace, PhysicalMemory, VMError


def entry(memory, loc):
    return int.from_bytes(memory.read(loc, 4), "little")


def test_kalloc_and_kfree_track_frames():
    memory = PhysicalMemory(4)
    a = memory.kalloc()
    b = memory.kalloc()
    assert a != b
    assert len(memory) == 2
    assert a in memory
    memory.kfree(a)
    assert len(memory) == 1
    assert a not in memory


def test_kalloc_exhaustion_raises():
    memory = PhysicalMemory(1)
    memory.kalloc()
    with pytest.raises(MemoryError):
        memory.kalloc()


def test_kfree_unknown_frame_raises():
    memory = PhysicalMemory(2)
    pa = memory.kalloc()
    with pytest.raises(VMError):
        memory.kfree(pa + 1)


def test_memory_write_read_round_trip():
    memory = PhysicalMemory(2)
    pa = memory.kalloc()
    memory.write(pa + 10, b"hello")
    assert memory.read(pa + 10, 5) == b"hello"
    with pytest.raises(VMError):
        memory.read(pa + PGSIZE - 2, 4 + PGSIZE * 10)


def test_walk_without_alloc_returns_none():
    space = AddressSpace(PhysicalMemory(4))
    assert space.walk(0, False) is None
    assert space.uva2ka(0) is None


def test_init_code_places_code_at_zero():
    memory = PhysicalMemory(4)
    space = AddressSpace(memory)
    space.init_code(b"\x90\x90\xc3")
    pa = space.uva2ka(0)
    assert memory.read(pa, 4) == b"\x90\x90\xc3\x00"


def test_init_code_too_large_raises():
    space = AddressSpace(PhysicalMemory(4))
    with pytest.raises(VMError):
        space.init_code(bytes(PGSIZE))


def test_map_pages_twice_is_remap():
    memory = PhysicalMemory(4)
    space = AddressSpace(memory)
    frame = memory.kalloc()
    space.map_pages(0, PGSIZE, frame, PTE_W | PTE_U)
    with pytest.raises(VMError):
        space.map_pages(0, PGSIZE, frame, PTE_W | PTE_U)


def test_alloc_and_copy_out_across_pages():
    memory = PhysicalMemory(8)
    space = AddressSpace(memory)
    assert space.alloc(0, 2 * PGSIZE) == 2 * PGSIZE
    space.copy_out(PGSIZE - 3, b"abcdef")
    first = space.uva2ka(0)
    second = space.uva2ka(PGSIZE)
    assert memory.read(first + PGSIZE - 3, 3) == b"abc"
    assert memory.read(second, 3) == b"def"


def test_alloc_smaller_returns_old_size():
    space = AddressSpace(PhysicalMemory(4))
    assert space.alloc(PGSIZE, 10) == PGSIZE


def test_alloc_into_kernel_space_raises():
    space = AddressSpace(PhysicalMemory(4))
    with pytest.raises(VMError):
        space.alloc(0, KERNBASE)


def test_alloc_failure_rolls_back():
    memory = PhysicalMemory(3)
    space = AddressSpace(memory)
    with pytest.raises(MemoryError):
        space.alloc(0, 2 * PGSIZE)
    assert space.uva2ka(0) is None
    assert len(memory) == 2


def test_dealloc_releases_frames():
    memory = PhysicalMemory(8)
    space = AddressSpace(memory)
    space.alloc(0, 3 * PGSIZE)
    used = len(memory)
    assert space.dealloc(3 * PGSIZE, PGSIZE) == PGSIZE
    assert len(memory) == used - 2
    assert space.uva2ka(PGSIZE) is None
    assert space.uva2ka(0) is not None
    assert space.dealloc(PGSIZE, 2 * PGSIZE) == PGSIZE


def test_free_releases_everything():
    memory = PhysicalMemory(8)
    space = AddressSpace(memory)
    space.alloc(0, 3 * PGSIZE)
    space.free()
    assert len(memory) == 0


def test_clear_user_hides_page():
    memory = PhysicalMemory(4)
    space = AddressSpace(memory)
    space.alloc(0, PGSIZE)
    space.clear_user(0)
    assert space.uva2ka(0) is None
    loc = space.walk(0, False)
    assert entry(memory, loc) & PTE_P


def test_clear_user_unmapped_raises():
    space = AddressSpace(PhysicalMemory(4))
    with pytest.raises(VMError):
        space.clear_user(PGSIZE)


def test_copy_is_independent():
    memory = PhysicalMemory(8)
    parent = AddressSpace(memory)
    parent.alloc(0, PGSIZE)
    parent.copy_out(0, b"hello")
    child = parent.copy(PGSIZE)
    assert child.uva2ka(0) != parent.uva2ka(0)
    assert memory.read(child.uva2ka(0), 5) == b"hello"
    parent.copy_out(0, b"HELLO")
    assert memory.read(child.uva2ka(0), 5) == b"hello"


def test_copy_of_unmapped_region_raises_and_cleans_up():
    memory = PhysicalMemory(8)
    parent = AddressSpace(memory)
    parent.alloc(0, PGSIZE)
    used = len(memory)
    with pytest.raises(VMError):
        parent.copy(2 * PGSIZE + PGSIZE * 1024)
    assert len(memory) == used


def test_copy_out_unmapped_raises():
    space = AddressSpace(PhysicalMemory(4))
    with pytest.raises(VMError):
        space.copy_out(0, b"x")


def test_load_fills_pages_from_reader():
    memory = PhysicalMemory(8)
    space = AddressSpace(memory)
    space.alloc(0, 2 * PGSIZE)
    blob = bytes(range(256)) * 20
    space.load(0, lambda off, n: blob[off:off + n], 0, len(blob))
    got = memory.read(space.uva2ka(0), PGSIZE) + memory.read(
        space.uva2ka(PGSIZE), len(blob) - PGSIZE
    )
    assert got == blob


def test_load_errors():
    memory = PhysicalMemory(8)
    space = AddressSpace(memory)
    space.alloc(0, PGSIZE)
    with pytest.raises(VMError):
        space.load(0, lambda off, n: b"short", 0, 100)
    with pytest.raises(VMError):
        space.load(1, lambda off, n: bytes(n), 0, 10)
    with pytest.raises(VMError):
        space.load(4 * PGSIZE * 1024, lambda off, n: bytes(n), 0, 10)


def test_kernel_mappings():
    memory = PhysicalMemory(80)
    space = AddressSpace.with_kernel(memory, KERNLINK + 0x100000)
    low = entry(memory, space.walk(KERNBASE, False))
    assert pte_addr(low) == 0
    assert low & PTE_W
    text = entry(memory, space.walk(KERNLINK, False))
    assert pte_addr(text) == EXTMEM
    assert not text & PTE_W
    dev = entry(memory, space.walk(DEVSPACE, False))
    assert pte_addr(dev) == DEVSPACE
    assert space.uva2ka(KERNBASE) is None
    space.free()
    assert len(memory) == 0


def test_kernel_mappings_without_memory_clean_up():
    memory = PhysicalMemory(10)
    with pytest.raises(MemoryError):
        AddressSpace.with_kernel(memory, KERNLINK + 0x100000)
    assert len(memory) == 0