"""Radix-tree page cache mapping page indices to page-sized buffers."""

from __future__ import annotations

PAGE_SIZE = 4096
POINTER_SIZE = 8
LAYER_SIZE = PAGE_SIZE // POINTER_SIZE
LEVELS = 4
_SHIFT = 9
_INDEX_MASK = LAYER_SIZE - 1
_U64 = (1 << 64) - 1


def _split_index(index: int) -> list[int]:
    index &= _U64
    return [(index >> (_SHIFT * (LEVELS - i - 1))) & _INDEX_MASK for i in range(LEVELS)]


class PageCache:
    """Four-level tree of 512-way tables whose leaves are page buffers.

    Each level consumes 9 bits of the page index, so only the low 36 bits
    of an index select a page.
    """

    def __init__(self) -> None:
        self._root: dict[int, dict] = {}

    def get(self, index: int) -> bytearray | None:
        """Return the page at ``index``, or ``None`` if it was never created."""
        *inner, leaf = _split_index(index)
        table = self._root
        for key in inner:
            table = table.get(key)
            if table is None:
                return None
        return table.get(leaf)

    def get_or_create(self, index: int) -> bytearray:
        """Return the page at ``index``, creating a zeroed one when missing."""
        *inner, leaf = _split_index(index)
        table = self._root
        for key in inner:
            table = table.setdefault(key, {})
        page = table.get(leaf)
        if page is None:
            page = table[leaf] = bytearray(PAGE_SIZE)
        return page