"""Device file system: a tmpfs whose nodes forward I/O to registered devices."""

from __future__ import annotations

import errno
import os
from typing import Any

from kcore import vfs as _vfs
from kcore.klog import kprintf
from kcore.panic import kassert
from kcore.tmpfs import TmpfsVnode
from kcore.vfs import CREAT_ATTR_GHOST, Vfs, Vnode, VnodeType


def _error(code: int) -> OSError:
    return OSError(code, os.strerror(code))


class Device:
    """A character device; subclasses override the operations they support."""

    def read(self, size: int, offset: int = 0, flags: int = 0) -> bytes:
        """Read up to ``size`` bytes from the device."""
        raise _error(errno.ENOSYS)

    def write(self, data: bytes, offset: int = 0, flags: int = 0) -> int:
        """Write ``data`` to the device and return the number of bytes taken."""
        raise _error(errno.ENOSYS)

    def ioctl(self, op: int, arg: Any = None) -> Any:
        """Perform a device-specific control operation."""
        raise _error(errno.ENOSYS)


class DevfsVnode(TmpfsVnode):
    """A devfs node; the device it stands for is kept in :attr:`other`."""

    def create(self, name: str, attr: int = 0) -> DevfsVnode:
        """Create a device node with no backing storage."""
        return super().create(name, attr | CREAT_ATTR_GHOST)

    def mkdir(self, name: str, attr: int = 0) -> DevfsVnode:
        """Create a directory inside devfs."""
        return super().mkdir(name, attr | CREAT_ATTR_GHOST)

    def _device(self) -> Device:
        device = self.other
        if device is None:
            if self.type is VnodeType.DIR:
                raise _error(errno.EISDIR)
            raise _error(errno.ENXIO)
        return device

    def read(self, size: int, offset: int = 0, flags: int = 0) -> bytes:
        """Forward a read to the device."""
        return self._device().read(size, offset, flags)

    def write(self, data: bytes, offset: int = 0, flags: int = 0) -> int:
        """Forward a write to the device."""
        return self._device().write(data, offset, flags)

    def ioctl(self, op: int, arg: Any = None) -> Any:
        """Forward a control operation to the device."""
        return self._device().ioctl(op, arg)

    def close(self) -> None:
        """Close the node, telling the device if it has a ``close`` of its own."""
        closer = getattr(self.other, "close", None)
        if callable(closer):
            closer()


def _mount(mountpoint: Vnode) -> Vfs:
    fs = Vfs()
    root = DevfsVnode(fs, VnodeType.DIR, isroot=True)
    fs.root = root
    fs.mountpoint = mountpoint
    kassert(mountpoint.type is VnodeType.DIR, "mountpoint is a directory")
    mountpoint.mountpointof = fs
    return fs


class Devfs:
    """The device file system, mounted on ``/dev`` of a root file system."""

    def __init__(self, rootfs: Vfs) -> None:
        kprintf("[  log  ] mounting devfs in /dev/\n")
        devdir = _vfs.mkdir(rootfs.root, "dev", 0)
        self.vfs = _mount(devdir)
        self.root: DevfsVnode = self.vfs.root

    def register(
        self,
        name: str,
        device: Device,
        directory: DevfsVnode | None = None,
    ) -> DevfsVnode:
        """Create ``name`` in ``directory`` (the devfs root by default) for ``device``."""
        if directory is None:
            directory = self.root
        kassert(isinstance(directory, DevfsVnode), "directory belongs to devfs")
        node = directory.create(name, 0)
        node.other = device
        return node