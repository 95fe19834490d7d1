"""Models of a small x86 teaching kernel's parts and its user-space library."""

__version__ = "0.1.0"

__all__ = [
    "layout",
    "cstring",
    "shell",
    "wc",
    "umalloc",
    "vm",
    "locks",
    "syscalls",
]