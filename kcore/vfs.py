"""Virtual file system layer: vnodes, mounts, virtual links and path lookup."""

from __future__ import annotations

import enum
import errno
import os
import threading
from dataclasses import dataclass
from typing import Any

PATH_SEP = "/"

CREAT_ATTR_GHOST = 1


def _error(code: int) -> OSError:
    return OSError(code, os.strerror(code))


class VnodeType(enum.Enum):
    """Kind of object a vnode stands for."""

    FILE = 0
    DIR = 1
    LINK = 2


@dataclass(eq=False)
class Vfs:
    """A mounted file system: its root vnode and where it is mounted."""

    root: Vnode | None = None
    mountpoint: Vnode | None = None


class Vnode:
    """A node of the virtual file system.

    File systems subclass this and override the operations they support;
    the ones left alone fail with ``ENOSYS``.
    """

    def __init__(
        self,
        vfs: Vfs | None = None,
        type: VnodeType = VnodeType.FILE,
        isroot: bool = False,
    ) -> None:
        self.vfs = vfs
        self.type = type
        self.isroot = isroot
        self.mountpointof: Vfs | None = None
        self.vlink_next: Vnode | None = None
        self.vlink_prev: Vnode | None = None
        self.num_ref = 1
        self._ref_lock = threading.Lock()

    def hold(self) -> int:
        """Take a reference and return the new count."""
        with self._ref_lock:
            self.num_ref += 1
            return self.num_ref

    def release(self) -> int:
        """Drop a reference and return the new count."""
        with self._ref_lock:
            self.num_ref -= 1
            return self.num_ref

    def _unsupported(self, operation: str, target: Any = None) -> OSError:
        message = f"{os.strerror(errno.ENOSYS)}: {type(self).__name__}.{operation}"
        if target is None:
            return OSError(errno.ENOSYS, message)
        return OSError(errno.ENOSYS, message, str(target))

    def close(self) -> None:
        """Close the node."""
        raise self._unsupported("close")

    def lookup(self, name: str) -> Vnode:
        """Find ``name`` in this directory and return it with a reference held."""
        raise self._unsupported("lookup", name)

    def create(self, name: str, attr: int = 0) -> Vnode:
        """Create a file named ``name`` in this directory."""
        raise self._unsupported("create", name)

    def mkdir(self, name: str, attr: int = 0) -> Vnode:
        """Create a directory named ``name`` in this directory."""
        raise self._unsupported("mkdir", name)

    def link(self, name: str, src: Vnode) -> None:
        """Make ``name`` in this directory refer to ``src``."""
        raise self._unsupported("link", name)

    def unlink(self, name: str) -> None:
        """Remove ``name`` from this directory."""
        raise self._unsupported("unlink", name)

    def read(self, size: int, offset: int = 0, flags: int = 0) -> bytes:
        """Read up to ``size`` bytes starting at ``offset``."""
        raise self._unsupported("read")

    def write(self, data: bytes, offset: int = 0, flags: int = 0) -> int:
        """Write ``data`` at ``offset`` and return the number of bytes written."""
        raise self._unsupported("write")

    def resolve(self) -> str:
        """Return the path a symbolic link points to."""
        raise self._unsupported("resolve", self.type.name.lower())

    def readdir(self, offset: int = 0) -> Any:
        """Return directory entries starting at ``offset``."""
        raise self._unsupported("readdir", offset)

    def ioctl(self, op: int, arg: Any = None) -> Any:
        """Perform a device-specific control operation."""
        raise self._unsupported("ioctl", hex(op))


def _vlink_child(node: Vnode) -> Vnode:
    while node.vlink_next is not None:
        node = node.vlink_next
    return node


def vlink_set(parent: Vnode | None, vlink: Vnode | None) -> None:
    """Make ``vlink`` the virtual-link child of ``parent``, detaching any old one."""
    if parent is not None:
        if parent.vlink_next is not None:
            parent.vlink_next.vlink_prev = None
        parent.vlink_next = vlink

    if vlink is not None:
        vlink.vlink_prev = parent


def close(node: Vnode) -> None:
    """Close the innermost virtual-link child of ``node``."""
    _vlink_child(node).close()


def lookup(path: str, root: Vnode | None, cwd: Vnode | None) -> Vnode:
    """Resolve ``path`` against ``root`` (absolute) or ``cwd`` (relative).

    Mount points are crossed in both directions. The returned vnode carries
    a reference taken on the caller's behalf.
    """
    node = cwd
    if path.startswith(PATH_SEP):
        path = path[1:]
        node = root
    elif cwd is None:
        raise _error(errno.EINVAL)

    if node is None:
        raise _error(errno.EINVAL)

    path = path.lstrip(PATH_SEP)
    node.hold()

    pos = 0
    end = len(path)
    while pos < end:
        sep = path.find(PATH_SEP, pos)
        last = sep < 0
        stop = end if last else sep
        section = path[pos:stop]

        if section == "..":
            while node.isroot and node.vfs is not None and node.vfs.mountpoint is not None:
                old = node
                node = node.vfs.mountpoint
                old.release()
                node.hold()

        if section != ".":
            if node.type is not VnodeType.DIR:
                node.release()
                raise _error(errno.ENOTDIR)

            directory = node
            try:
                found = directory.lookup(section)
            except OSError:
                found = None

            if found is None:
                directory.release()
                raise _error(errno.ENOENT)

            node = found
            while node.mountpointof is not None:
                if directory is not node:
                    directory.release()
                directory = node
                node = node.mountpointof.root
                node.hold()

        if last:
            break
        pos = stop + 1

    return node


def create(directory: Vnode, name: str, attr: int = 0) -> Vnode:
    """Create a file in ``directory``."""
    return directory.create(name, attr)


def mkdir(parent: Vnode, name: str, attr: int = 0) -> Vnode:
    """Create a directory in ``parent``."""
    return parent.mkdir(name, attr)


def link(directory: Vnode, name: str, src: Vnode) -> None:
    """Link ``src`` as ``name`` in ``directory``, carrying its virtual links over."""
    try:
        directory.link(name, src)
        created = directory.lookup(name)
    except OSError:
        created = None

    if created is None:
        raise _error(errno.ENOENT)

    created.vlink_prev = src.vlink_prev
    created.vlink_next = src.vlink_next
    created.release()


def unlink(directory: Vnode, name: str) -> None:
    """Remove ``name`` from ``directory``."""
    directory.unlink(name)


def read(node: Vnode, size: int, offset: int = 0, flags: int = 0) -> bytes:
    """Read from the innermost virtual-link child of ``node``."""
    return _vlink_child(node).read(size, offset, flags)


def write(node: Vnode, data: bytes, offset: int = 0, flags: int = 0) -> int:
    """Write to the innermost virtual-link child of ``node``."""
    return _vlink_child(node).write(data, offset, flags)


def resolve(node: Vnode) -> str:
    """Return the target path of the link ``node``."""
    return node.resolve()


def readdir(directory: Vnode, offset: int = 0) -> Any:
    """Read entries of ``directory`` starting at ``offset``."""
    return directory.readdir(offset)


def ioctl(node: Vnode, op: int, arg: Any = None) -> Any:
    """Send a control operation to the innermost virtual-link child of ``node``."""
    return _vlink_child(node).ioctl(op, arg)