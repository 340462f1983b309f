"""Bitmap-based physical page allocator."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass

from kcore.panic import kassert

PAGE_SIZE = 4096

_U64 = (1 << 64) - 1


@dataclass(frozen=True)
class MemoryMapEntry:
    """One segment of the firmware memory map."""

    base: int
    length: int
    usable: bool


@dataclass(frozen=True)
class MemoryInfo:
    """Memory counters, in bytes, kept as 64-bit unsigned values."""

    used: int
    free: int
    reserved: int
    usable: int
    total: int


class PageAllocator:
    """Hands out physical pages tracked by one bit each (set means taken)."""

    def __init__(self, entries: Iterable[MemoryMapEntry]) -> None:
        self.page_size = PAGE_SIZE
        self._lock = threading.Lock()
        self._mem_size = 0
        self._usable_mem = 0
        self._free_mem = 0
        self._reserved_mem = 0
        self._used_mem = 0
        self._index = 0
        self._bitmap = bytearray()
        self._bitmap_base: int | None = None

        page_size = self.page_size
        entries = list(entries)
        highest_addr = 0

        for entry in entries:
            self._mem_size += entry.length
            if not entry.usable:
                self._reserved_mem += entry.length
                continue
            self._usable_mem += entry.length
            highest_addr = max(highest_addr, entry.base + entry.length)

        bitmap_size = (highest_addr // page_size) // 8 + 1

        for entry in entries:
            if entry.usable and entry.length >= bitmap_size:
                self._bitmap = bytearray(b"\xff" * bitmap_size)
                self._bitmap_base = entry.base
                break

        kassert(self._bitmap_base is not None, "bitmap placement")

        max_len = 0
        for entry in entries:
            base = entry.base
            length = entry.length

            # Keep the bitmap itself out of the free pool.
            if base == self._bitmap_base:
                base += bitmap_size
                length -= bitmap_size

            if entry.usable:
                for page in range(length // page_size):
                    self._unreserve(base + page * page_size, used=False)

                if length > max_len:
                    max_len = length
                    self._index = base // page_size

    def _get(self, idx: int) -> bool:
        return bool(self._bitmap[idx // 8] & (0x80 >> (idx % 8)))

    def _set(self, idx: int, value: bool) -> None:
        mask = 0x80 >> (idx % 8)
        if value:
            self._bitmap[idx // 8] |= mask
        else:
            self._bitmap[idx // 8] &= ~mask & 0xFF

    def _reserve(self, address: int) -> None:
        idx = address // self.page_size
        kassert(not self._get(idx), "page not yet reserved")
        self._set(idx, True)
        self._free_mem -= self.page_size
        self._used_mem += self.page_size

    def _unreserve(self, address: int, used: bool) -> None:
        idx = address // self.page_size
        kassert(self._get(idx), "page reserved")
        self._set(idx, False)
        self._free_mem += self.page_size
        if used:
            self._used_mem -= self.page_size
        else:
            self._reserved_mem -= self.page_size

        if self._index > idx:
            self._index = idx

    def alloc(self) -> int:
        """Take the next free page and return its physical address."""
        address = None
        with self._lock:
            limit = len(self._bitmap) * 8
            while self._index < limit:
                if not self._get(self._index):
                    address = self._index * self.page_size
                    self._reserve(address)
                    break
                self._index += 1

        kassert(address is not None, "free page available")
        return address

    def free(self, page: int) -> None:
        """Return a page obtained from :meth:`alloc`."""
        with self._lock:
            self._unreserve(page, used=True)

    def info(self) -> MemoryInfo:
        """Report the current memory counters."""
        return MemoryInfo(
            used=self._used_mem & _U64,
            free=self._free_mem & _U64,
            reserved=self._reserved_mem & _U64,
            usable=self._usable_mem & _U64,
            total=self._mem_size & _U64,
        )