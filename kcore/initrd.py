"""Unpack a tar archive (ustar/GNU) into a directory of the virtual file system."""

from __future__ import annotations

from kcore import vfs as _vfs
from kcore.klog import kprintf
from kcore.panic import kassert
from kcore.vfs import Vnode

BLOCK_SIZE = 512

_LONG_NAME = ord("L")
_LONG_LINK = ord("K")
_DIRECTORY = ord("5")

_NAME_LEN = 100
_SIZE_OFFSET = 124
_SIZE_DIGITS = 11
_TYPE_OFFSET = 156


def _oct_atoi(field: bytes, limit: int) -> int:
    value = 0
    for byte in field[:limit]:
        if byte == 0:
            break
        value = value * 8 + (byte - ord("0"))
    return value


def _entry_path(header: bytes) -> bytes:
    raw = header[:_NAME_LEN]
    if raw[_NAME_LEN - 1] == 0:
        raw = raw.split(b"\0", 1)[0]
    return raw


def _create_node(directory: Vnode, name: str, kind: int, contents: bytes, size: int) -> None:
    if kind == _DIRECTORY:
        _vfs.mkdir(directory, name, 0)
        return

    node = _vfs.create(directory, name, 0)
    node.hold()
    written = _vfs.write(node, contents, 0, 0)
    kassert(written == size, "initrd file fully written")
    node.release()


def _extract_entry(root: Vnode, header: bytes, contents: bytes, size: int) -> None:
    raw = _entry_path(header)

    # The archive's own "./" entry has nothing to create.
    if len(raw) == 2 and raw[:1] == b".":
        return

    path = raw.decode("utf-8", "surrogateescape")
    kprintf("[ debug ] extracting file %s\n", path)
    path = path.rstrip("/")

    directory = root
    name = path
    sep = path.find("/")
    if sep >= 0:
        try:
            found: Vnode | None = _vfs.lookup(path[:sep], root, root)
        except OSError:
            found = None
        kassert(found is not None, "initrd parent directory exists")
        directory = found
        name = path[sep + 1 :]

    name = name.rstrip("/")
    _create_node(directory, name, header[_TYPE_OFFSET], contents, size)

    if directory is not root:
        directory.release()


def extract(root: Vnode, archive: bytes | bytearray | memoryview) -> None:
    """Create every file and directory of the tar ``archive`` under ``root``.

    Long-name and long-link records are not supported and are passed over.
    Extraction stops at the first header whose name starts with a zero byte.
    """
    kprintf("[  log  ] extracting initrd\n")
    data = bytes(archive)
    pos = 0

    while pos < len(data):
        header = data[pos : pos + BLOCK_SIZE].ljust(BLOCK_SIZE, b"\0")
        if header[0] == 0:
            break

        size = 0
        kind = header[_TYPE_OFFSET]
        if kind not in (_LONG_NAME, _LONG_LINK):
            size = _oct_atoi(header[_SIZE_OFFSET : _SIZE_OFFSET + 12], _SIZE_DIGITS)
            start = pos + BLOCK_SIZE
            _extract_entry(root, header, data[start : start + size], size)

        pos += BLOCK_SIZE
        pos += (size + BLOCK_SIZE - 1) & ~(BLOCK_SIZE - 1)