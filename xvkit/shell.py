"""Command-line parser for the shell: tokens, command trees and syntax errors."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Optional, Union

# Open modes used by redirections.
O_RDONLY = 0x000
O_WRONLY = 0x001
O_RDWR = 0x002
O_CREATE = 0x200

MAXARGS = 10

WHITESPACE = " \t\r\n\v"
SYMBOLS = "<|>&;()"

# Token kinds besides the single-character symbols.
WORD = "a"
APPEND = "+"


class ShellSyntaxError(ValueError):
    """Raised when a command line cannot be parsed."""

    def __init__(self, message: str, leftovers: Optional[str] = None) -> None:
        if leftovers is not None:
            message = f"{message} (leftovers: {leftovers!r})"
        super().__init__(message)
        self.leftovers = leftovers


@dataclass(frozen=True)
class Token:
    """A lexical token: its kind, its text and where it sits in the line."""

    kind: str
    text: str
    start: int
    end: int


@dataclass
class ExecCmd:
    """Run a program with arguments."""

    argv: list[str] = field(default_factory=list)


@dataclass
class RedirCmd:
    """Run a command with one file descriptor redirected to a file."""

    cmd: "Command"
    file: str
    mode: int
    fd: int


@dataclass
class PipeCmd:
    """Connect the output of one command to the input of another."""

    left: "Command"
    right: "Command"


@dataclass
class ListCmd:
    """Run one command, wait for it, then run another."""

    left: "Command"
    right: "Command"


@dataclass
class BackCmd:
    """Run a command in the background."""

    cmd: "Command"


Command = Union[ExecCmd, RedirCmd, PipeCmd, ListCmd, BackCmd]


class _Scanner:
    def __init__(self, text: str) -> None:
        self.text = text.split("\0", 1)[0]
        self.pos = 0

    @property
    def end(self) -> int:
        return len(self.text)

    def _skip_space(self) -> None:
        while self.pos < self.end and self.text[self.pos] in WHITESPACE:
            self.pos += 1

    def _current(self) -> str:
        return self.text[self.pos] if self.pos < self.end else ""

    def peek(self, toks: str) -> bool:
        self._skip_space()
        ch = self._current()
        return bool(ch) and ch in toks

    def next_token(self) -> Optional[Token]:
        """The next token, or None at the end of the line."""
        self._skip_space()
        start = self.pos
        ch = self._current()
        if not ch:
            return None
        if ch in "|();&<":
            self.pos += 1
            kind = ch
        elif ch == ">":
            self.pos += 1
            kind = ">"
            if self._current() == ">":
                kind = APPEND
                self.pos += 1
        else:
            kind = WORD
            while self.pos < self.end and self.text[self.pos] not in WHITESPACE + SYMBOLS:
                self.pos += 1
        token = Token(kind, self.text[start:self.pos], start, self.pos)
        self._skip_space()
        return token

    def rest(self) -> str:
        return self.text[self.pos:]


def tokenize(text: str) -> Iterator[Token]:
    """Yield the tokens of a command line."""
    scanner = _Scanner(text)
    while (token := scanner.next_token()) is not None:
        yield token


class _Parser:
    def __init__(self, text: str) -> None:
        self.scan = _Scanner(text)

    def parse(self) -> Command:
        cmd = self.line()
        self.scan.peek("")
        if self.scan.pos != self.scan.end:
            raise ShellSyntaxError("syntax", leftovers=self.scan.rest())
        return cmd

    def line(self) -> Command:
        cmd = self.pipe()
        while self.scan.peek("&"):
            self.scan.next_token()
            cmd = BackCmd(cmd)
        if self.scan.peek(";"):
            self.scan.next_token()
            cmd = ListCmd(cmd, self.line())
        return cmd

    def pipe(self) -> Command:
        cmd = self.exec()
        if self.scan.peek("|"):
            self.scan.next_token()
            cmd = PipeCmd(cmd, self.pipe())
        return cmd

    def redirs(self, cmd: Command) -> Command:
        while self.scan.peek("<>"):
            op = self.scan.next_token()
            target = self.scan.next_token()
            if target is None or target.kind != WORD:
                raise ShellSyntaxError("missing file for redirection")
            if op.kind == "<":
                cmd = RedirCmd(cmd, target.text, O_RDONLY, 0)
            else:
                cmd = RedirCmd(cmd, target.text, O_WRONLY | O_CREATE, 1)
        return cmd

    def block(self) -> Command:
        if not self.scan.peek("("):
            raise ShellSyntaxError("parseblock")
        self.scan.next_token()
        cmd = self.line()
        if not self.scan.peek(")"):
            raise ShellSyntaxError("syntax - missing )")
        self.scan.next_token()
        return self.redirs(cmd)

    def exec(self) -> Command:
        if self.scan.peek("("):
            return self.block()
        exec_cmd = ExecCmd()
        cmd: Command = self.redirs(exec_cmd)
        while not self.scan.peek("|)&;"):
            token = self.scan.next_token()
            if token is None:
                break
            if token.kind != WORD:
                raise ShellSyntaxError("syntax")
            exec_cmd.argv.append(token.text)
            if len(exec_cmd.argv) >= MAXARGS:
                raise ShellSyntaxError("too many args")
            cmd = self.redirs(cmd)
        return cmd


def parse_cmd(text: str) -> Command:
    """Parse a full command line into a command tree."""
    return _Parser(text).parse()