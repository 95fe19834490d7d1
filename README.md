# xvkit

Small, dependency-free Python models of the moving parts of a classic
32-bit x86 teaching kernel and its user-space library. Each module stands
on its own and can be used to explore, test or teach how that piece works.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## What is inside

| Module | Contents |
| --- | --- |
| `xvkit.layout` | Memory-layout, MMU and kernel parameter constants (`KERNBASE`, `PGSIZE`, `PTE_P`, `NPROC`, ...); address helpers `v2p`, `p2v`, `pdx`, `ptx`, `pgaddr`, `pgroundup`, `pgrounddown`, `pte_addr`, `pte_flags`; segment and gate descriptors `SegDesc`, `seg`, `seg16`, `seg_asm`, `GateDesc`, `set_gate`, whose `pack()` gives the 8-byte encoding. |
| `xvkit.cstring` | C-style string and memory routines over bytes: `memset` and `memmove` change a `bytearray` in place; `memcmp`, `strncmp`, `strcmp`, `strlen`, `strchr`, `atoi` follow NUL-terminated semantics; `strncpy` and `safestrcpy` return the bytes the copy would leave; `gets` reads one line from a binary stream. |
| `xvkit.shell` | The shell's command-line grammar: `tokenize` yields `Token`s, `parse_cmd` builds a tree of `ExecCmd`, `RedirCmd`, `PipeCmd`, `ListCmd` and `BackCmd`. Bad input raises `ShellSyntaxError`. |
| `xvkit.wc` | Line, word and byte counting: `wc` returns `Counts`, `format_counts` formats a report line, `main` is the command-line entry point. |
| `xvkit.umalloc` | A first-fit, coalescing free-list allocator over a simulated break: `Heap(limit)` with `sbrk`, `malloc`, `free` and `free_blocks`. Running past the limit raises `MemoryError`. |
| `xvkit.vm` | Two-level page tables stored in simulated physical frames: `PhysicalMemory` (`kalloc`, `kfree`, `read`, `write`) and `AddressSpace` (`walk`, `map_pages`, `init_code`, `load`, `alloc`, `dealloc`, `free`, `clear_user`, `copy`, `uva2ka`, `copy_out`, and `with_kernel` for the kernel mappings). Inconsistent states raise `VMError`; running out of frames raises `MemoryError`. |
| `xvkit.locks` | Per-CPU interrupt nesting (`Cpu.push_cli` / `Cpu.pop_cli`), `SpinLock` (held by a `Cpu`) and `SleepLock` (held by a process id). Misuse raises `KernelPanic`. |
| `xvkit.syscalls` | Trap and IRQ numbers, system call numbers (`Syscall`), argument fetching from a process's memory (`ProcessImage.fetch_int`, `fetch_str`, `arg_int`, `arg_ptr`, `arg_str`), and table dispatch (`Dispatcher`). Bad arguments raise `SyscallError`; `Dispatcher.dispatch` turns that, and unknown numbers, into `-1`. |

## Examples

Page-table arithmetic:

```python
from xvkit.layout import pdx, ptx, pgroundup

va = 0x00403123
print(pdx(va), ptx(va))      # 1 3
print(hex(pgroundup(5000)))  # 0x2000
```

Parsing a shell command line:

```python
from xvkit.shell import parse_cmd

tree = parse_cmd("cat README | wc > counts; echo done &")
print(tree)
```

Allocating from the user heap model:

```python
from xvkit.umalloc import Heap

heap = Heap(1 << 24)
a = heap.malloc(100)
heap.free(a)
print(heap.free_blocks())
```

Growing a user address space and writing into it:

```python
from xvkit.vm import AddressSpace, PhysicalMemory

memory = PhysicalMemory(64)
space = AddressSpace(memory)
space.alloc(0, 8192)
space.copy_out(100, b"hi")
print(memory.read(space.uva2ka(0) + 100, 2))  # b'hi'
```

## Command line

Count lines, words and bytes of files, or of standard input when no file
is given:

```
xvkit-wc README.md
cat README.md | xvkit-wc
```

Each result is printed as `lines words bytes name`.

## What it does not do

xvkit models pieces, not a running system. There is no boot, scheduler,
process table, file system or device layer: `xvkit.shell` parses command
lines but does not run them, `xvkit.syscalls` dispatches to handlers you
supply rather than providing any, and `xvkit.vm` manages simulated frames,
not real memory.