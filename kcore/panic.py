"""Kernel panic and assertion helpers."""

from __future__ import annotations

from typing import Any

from kcore.klog import kprintf, puts


class KernelPanic(RuntimeError):
    """Raised when the kernel cannot continue."""

    def __init__(self, message: str | None = None, cpu: int = 0, context: Any = None) -> None:
        super().__init__(message if message is not None else "kernel panic")
        self.message = message
        self.cpu = cpu
        self.context = context


def panic(message: str | None = None, cpu: int = 0, context: Any = None) -> None:
    """Report a kernel panic on the log and raise :class:`KernelPanic`."""
    kprintf("kernel panic on cpu %u\n", cpu)

    if message is not None:
        puts(message)
        puts("\n")

    if context is not None:
        puts(str(context))
        puts("\n")

    raise KernelPanic(message, cpu, context)


def kassert(condition: Any, description: str = "assertion") -> None:
    """Panic with ``description`` when ``condition`` is false."""
    if not condition:
        puts(f"{description} failed\n")
        panic()