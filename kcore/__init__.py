"""In-memory kernel core: page and slab allocators, a VFS with tmpfs, devfs and pipes, tar initrd extraction and a TTY."""

__version__ = "0.1.0"

__all__ = [
    "devfs",
    "initrd",
    "klog",
    "pagecache",
    "panic",
    "pipefs",
    "pmm",
    "slab",
    "tmpfs",
    "tty",
    "vfs",
]