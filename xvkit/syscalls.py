"""System call numbers, argument fetching from user memory, and dispatch."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, Mapping, Union

logger = logging.getLogger(__name__)

_UINT = 0xFFFFFFFF

# Processor-defined trap numbers.
T_DIVIDE = 0
T_DEBUG = 1
T_NMI = 2
T_BRKPT = 3
T_OFLOW = 4
T_BOUND = 5
T_ILLOP = 6
T_DEVICE = 7
T_DBLFLT = 8
T_TSS = 10
T_SEGNP = 11
T_STACK = 12
T_GPFLT = 13
T_PGFLT = 14
T_FPERR = 16
T_ALIGN = 17
T_MCHK = 18
T_SIMDERR = 19

# Software-chosen vectors.
T_SYSCALL = 64
T_DEFAULT = 500
T_IRQ0 = 32

IRQ_TIMER = 0
IRQ_KBD = 1
IRQ_COM1 = 4
IRQ_IDE = 14
IRQ_ERROR = 19
IRQ_SPURIOUS = 31


class SyscallError(Exception):
    """A system call argument could not be fetched or was invalid."""


class Syscall(IntEnum):
    """System call numbers."""

    FORK = 1
    EXIT = 2
    WAIT = 3
    PIPE = 4
    READ = 5
    KILL = 6
    EXEC = 7
    FSTAT = 8
    CHDIR = 9
    DUP = 10
    GETPID = 11
    SBRK = 12
    SLEEP = 13
    UPTIME = 14
    OPEN = 15
    WRITE = 16
    MKNOD = 17
    UNLINK = 18
    LINK = 19
    MKDIR = 20
    CLOSE = 21
    SETTICKETS = 22
    GETPINFO = 23


@dataclass
class ProcessImage:
    """A process's user memory, from address 0 to its size, and its stack pointer."""

    memory: bytearray = field(default_factory=bytearray)
    esp: int = 0
    pid: int = 1
    name: str = ""

    @property
    def sz(self) -> int:
        """Size of the process's memory in bytes."""
        return len(self.memory)

    def fetch_int(self, addr: int) -> int:
        """The signed 32-bit integer stored at addr."""
        addr &= _UINT
        if addr >= self.sz or addr + 4 > self.sz:
            raise SyscallError(f"bad integer address {addr:#x}")
        return int.from_bytes(self.memory[addr:addr + 4], "little", signed=True)

    def fetch_str(self, addr: int) -> bytes:
        """The NUL-terminated string at addr, without the NUL."""
        addr &= _UINT
        if addr >= self.sz:
            raise SyscallError(f"bad string address {addr:#x}")
        end = self.memory.find(b"\0", addr)
        if end < 0:
            raise SyscallError(f"unterminated string at {addr:#x}")
        return bytes(self.memory[addr:end])

    def arg_int(self, n: int) -> int:
        """The nth 32-bit argument, read from above the saved return address."""
        return self.fetch_int(self.esp + 4 + 4 * n)

    def arg_ptr(self, n: int, size: int) -> int:
        """The nth argument as the address of a block of size bytes in user memory."""
        addr = self.arg_int(n) & _UINT
        if size < 0 or addr >= self.sz or addr + size > self.sz:
            raise SyscallError(f"bad pointer {addr:#x} for {size} bytes")
        return addr

    def arg_str(self, n: int) -> bytes:
        """The nth argument as a NUL-terminated string."""
        return self.fetch_str(self.arg_int(n))


Handler = Callable[[ProcessImage], int]


class Dispatcher:
    """Routes a system call number to its handler."""

    def __init__(self, handlers: Mapping[Union[Syscall, int], Handler]) -> None:
        self.handlers: dict[Syscall, Handler] = {
            Syscall(num): handler for num, handler in handlers.items()
        }

    def dispatch(self, num: int, proc: ProcessImage) -> int:
        """Run the handler for num and return its result, or -1 on failure."""
        try:
            handler = self.handlers.get(Syscall(num))
        except ValueError:
            handler = None
        if handler is None:
            logger.warning("%d %s: unknown sys call %d", proc.pid, proc.name, num)
            return -1
        try:
            return handler(proc)
        except SyscallError:
            return -1