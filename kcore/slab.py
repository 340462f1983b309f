"""Fixed-size object allocator carving page-sized slabs into free lists."""

from __future__ import annotations

import threading
from typing import Protocol

from kcore.panic import kassert

PAGE_SIZE = 4096
HHDM_OFFSET = 0xFFFF800000000000
NUM_SLABS = PAGE_SIZE // 16

_WORD = 8
_U64 = (1 << 64) - 1


class PageSource(Protocol):
    """Anything that hands out physical pages, such as a page allocator."""

    def alloc(self) -> int: ...


class SlabAllocator:
    """Allocates small objects from per-size-class free lists.

    Objects are grouped by ``(size + 15) // 16``. Each class draws whole pages
    from ``pages`` and threads a singly linked free list through them; the
    link words are kept in a simulated word-addressed memory so that freeing,
    reuse and zeroing behave as they would on real memory. Addresses returned
    are in the higher-half direct map.
    """

    def __init__(self, pages: PageSource) -> None:
        self._pages = pages
        self._heads = [0] * NUM_SLABS
        self._words: dict[int, int] = {}
        self._lock = threading.Lock()

    def _size_class(self, size: int) -> int:
        index = (size + 15) // 16
        kassert(index < NUM_SLABS, "size class in range")
        return index

    def _fill(self, address: int, size: int, byte: int) -> None:
        end = address + size
        start = address - address % _WORD
        for word in range(start, end, _WORD):
            lo = max(address, word) - word
            hi = min(end, word + _WORD) - word
            mask = ((1 << (8 * (hi - lo))) - 1) << (8 * lo)
            current = self._words.get(word, _U64)
            if byte:
                self._words[word] = current | mask
            else:
                self._words[word] = current & ~mask & _U64

    def _init_slab(self, index: int, size: int) -> None:
        entry_size = size + size % 16
        kassert(entry_size > 0, "non-empty slab entry")
        base = HHDM_OFFSET + self._pages.alloc()
        last = PAGE_SIZE // entry_size - 1
        stride = (entry_size // _WORD) * _WORD

        self._fill(base, PAGE_SIZE, 0xFF)
        for k in range(last):
            self._words[base + k * stride] = base + (k + 1) * stride
        self._words[base + last * stride] = 0
        self._heads[index] = base

    def alloc(self, size: int) -> int:
        """Return the address of a zeroed object of at least ``size`` bytes."""
        index = self._size_class(size)

        with self._lock:
            if self._heads[index] == 0:
                self._init_slab(index, size)
            address = self._heads[index]
            self._heads[index] = self._words.get(address, _U64)

        self._fill(address, size, 0)
        return address

    def free(self, address: int | None, size: int) -> None:
        """Give the object at ``address`` back to its size class."""
        if not address:
            return

        index = self._size_class(size)
        with self._lock:
            self._words[address] = self._heads[index]
            self._heads[index] = address