"""Spinning and sleeping mutual-exclusion locks with per-CPU interrupt nesting."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional

# Interrupt-enable bit of the flags register.
FL_IF = 0x00000200


class KernelPanic(RuntimeError):
    """An unrecoverable misuse of a kernel primitive."""


@dataclass(eq=False)
class Cpu:
    """The interrupt state of one processor.

    ncli counts nested push_cli calls; intena remembers whether interrupts
    were enabled before the outermost push_cli.
    """

    id: int = 0
    interrupts_enabled: bool = True
    ncli: int = 0
    intena: bool = False

    @property
    def eflags(self) -> int:
        """The flags register as far as the interrupt bit goes."""
        return FL_IF if self.interrupts_enabled else 0

    def push_cli(self) -> None:
        """Disable interrupts; matched calls to pop_cli undo it."""
        eflags = self.eflags
        self.interrupts_enabled = False
        if self.ncli == 0:
            self.intena = bool(eflags & FL_IF)
        self.ncli += 1

    def pop_cli(self) -> None:
        """Undo one push_cli, re-enabling interrupts after the outermost one."""
        if self.eflags & FL_IF:
            raise KernelPanic("popcli - interruptible")
        self.ncli -= 1
        if self.ncli < 0:
            self.ncli = 0
            raise KernelPanic("popcli")
        if self.ncli == 0 and self.intena:
            self.interrupts_enabled = True


class SpinLock:
    """A lock that busy-waits and keeps interrupts off while it is held."""

    def __init__(self, name: str = "") -> None:
        self.name = name
        self.cpu: Optional[Cpu] = None
        self._flag = threading.Lock()

    def __repr__(self) -> str:
        return f"SpinLock(name={self.name!r}, locked={self.locked})"

    @property
    def locked(self) -> bool:
        """Whether some CPU holds the lock."""
        return self._flag.locked()

    def acquire(self, cpu: Cpu) -> None:
        """Take the lock on behalf of cpu, waiting while another CPU holds it."""
        cpu.push_cli()
        if self.holding(cpu):
            cpu.pop_cli()
            raise KernelPanic("acquire")
        self._flag.acquire()
        self.cpu = cpu

    def release(self, cpu: Cpu) -> None:
        """Give up the lock held by cpu."""
        if not self.holding(cpu):
            raise KernelPanic("release")
        self.cpu = None
        self._flag.release()
        cpu.pop_cli()

    def holding(self, cpu: Cpu) -> bool:
        """Whether cpu holds this lock."""
        cpu.push_cli()
        try:
            return self.locked and self.cpu is cpu
        finally:
            cpu.pop_cli()


class SleepLock:
    """A long-term lock whose waiters sleep instead of spinning."""

    def __init__(self, name: str = "") -> None:
        self.name = name
        self.locked = False
        self.pid = 0
        self._cond = threading.Condition(threading.Lock())

    def __repr__(self) -> str:
        return f"SleepLock(name={self.name!r}, locked={self.locked}, pid={self.pid})"

    def acquire(self, pid: int) -> None:
        """Take the lock for process pid, sleeping until it is free."""
        with self._cond:
            while self.locked:
                self._cond.wait()
            self.locked = True
            self.pid = pid

    def release(self) -> None:
        """Free the lock and wake every sleeper."""
        with self._cond:
            self.locked = False
            self.pid = 0
            self._cond.notify_all()

    def holding(self, pid: int) -> bool:
        """Whether process pid holds the lock."""
        with self._cond:
            return self.locked and self.pid == pid