"""In-memory file system whose file contents live in a page cache."""

from __future__ import annotations

import errno
import os
import threading
from typing import Any

from kcore.pagecache import PAGE_SIZE, PageCache
from kcore.panic import kassert
from kcore.vfs import CREAT_ATTR_GHOST, Vfs, Vnode, VnodeType


def _error(code: int) -> OSError:
    return OSError(code, os.strerror(code))


class TmpfsVnode(Vnode):
    """A tmpfs directory, file or ghost node.

    Directories keep their entries in creation order; files keep their bytes
    in a :class:`PageCache`. Ghost nodes carry neither and hold whatever the
    owner stores in :attr:`other`.
    """

    def __init__(
        self,
        vfs: Vfs | None = None,
        type: VnodeType = VnodeType.FILE,
        isroot: bool = False,
    ) -> None:
        super().__init__(vfs, type, isroot)
        self.num_links = 1
        self.entries: list[tuple[str, TmpfsVnode]] = []
        self.parent: TmpfsVnode | None = None
        self.size = 0
        self.data: PageCache | None = None
        self.other: Any = None
        self._lock = threading.Lock()

    def _new_child(self) -> TmpfsVnode:
        kassert(self.type is VnodeType.DIR, "parent is a directory")
        return type(self)(self.vfs)

    def _attach(self, name: str, child: TmpfsVnode) -> None:
        with self._lock:
            self.entries.append((name, child))

    def create(self, name: str, attr: int = 0) -> TmpfsVnode:
        """Create a file named ``name``; with the ghost attribute no storage is set up."""
        child = self._new_child()
        if not attr & CREAT_ATTR_GHOST:
            child.size = 0
            child.data = PageCache()
            child.type = VnodeType.FILE
        self._attach(name, child)
        return child

    def mkdir(self, name: str, attr: int = 0) -> TmpfsVnode:
        """Create an empty directory named ``name``."""
        child = self._new_child()
        child.parent = self
        child.type = VnodeType.DIR
        self._attach(name, child)
        return child

    def lookup(self, name: str) -> TmpfsVnode:
        """Find ``name`` here; ``..`` yields the parent, or this node at the top."""
        kassert(self.type is VnodeType.DIR, "lookup in a directory")

        if name == "..":
            if self.parent is not None:
                self.parent.hold()
                return self.parent
            return self

        with self._lock:
            for entry_name, node in self.entries:
                if entry_name == name:
                    node.hold()
                    return node

        raise _error(errno.ENOENT)

    def read(self, size: int, offset: int = 0, flags: int = 0) -> bytes:
        """Read up to ``size`` bytes at ``offset``; holes read as zeros."""
        if self.type is VnodeType.DIR:
            raise _error(errno.EISDIR)

        if offset >= self.size:
            return b""

        size = min(size, self.size - offset)
        if size <= 0:
            return b""

        out = bytearray()
        stop = offset + size
        with self._lock:
            cur = offset
            while cur < stop:
                page_end = min(cur - cur % PAGE_SIZE + PAGE_SIZE, stop)
                start = cur % PAGE_SIZE
                length = page_end - cur
                page = self.data.get(cur // PAGE_SIZE) if self.data is not None else None
                if page is None:
                    out.extend(bytes(length))
                else:
                    out.extend(page[start : start + length])
                cur = page_end

        return bytes(out)

    def write(self, data: bytes, offset: int = 0, flags: int = 0) -> int:
        """Write ``data`` at ``offset``, growing the file as needed."""
        if self.type is VnodeType.DIR:
            raise _error(errno.EISDIR)

        view = memoryview(bytes(data))
        if len(view) == 0:
            return 0

        written = 0
        stop = offset + len(view)
        with self._lock:
            if self.data is None:
                self.data = PageCache()
            self.size = max(self.size, stop)

            cur = offset
            while cur < stop:
                page_end = min(cur - cur % PAGE_SIZE + PAGE_SIZE, stop)
                start = cur % PAGE_SIZE
                length = page_end - cur
                page = self.data.get_or_create(cur // PAGE_SIZE)
                page[start : start + length] = view[cur - offset : cur - offset + length]
                written += length
                cur = page_end

        return written


def mount(mountpoint: Vnode | None = None) -> Vfs:
    """Create a fresh tmpfs, mounting it on ``mountpoint`` when one is given."""
    vfs = Vfs()
    root = TmpfsVnode(vfs, VnodeType.DIR, isroot=True)
    vfs.root = root
    vfs.mountpoint = mountpoint

    if mountpoint is not None:
        kassert(mountpoint.type is VnodeType.DIR, "mountpoint is a directory")
        mountpoint.mountpointof = vfs

    return vfs