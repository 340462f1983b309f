# kcore

`kcore` is the core of a small kernel, modelled in pure Python. It covers a
bitmap page allocator, a slab allocator, a virtual file system with an
in-memory file system, a device file system and pipes, extraction of a tar
initrd, and a terminal line discipline. All of it lives in memory. That makes
it useful for teaching, for experiments and for testing file-system logic.

## Installation

```
pip install .
```

To run the test suite as well:

```
pip install ".[test]"
pytest
```

## Modules

- `kcore.klog`: the log sink. `set_hook` installs a function that receives
  every character, and `set_hook(None)` brings back the default, which drops
  everything. `putc` and `puts` send text to the sink.
  - `kformat` renders a minimal printf dialect: `%u`, `%d` / `%i`, `%x` / `%p`,
    `%c` and `%s`. Hex output is `0x` followed by 16 upper-case digits. Any
    other conversion is dropped and uses no argument.
  - `kprintf` formats with `kformat` and writes the result to the log.
- `kcore.panic`: `panic` logs a report and raises `KernelPanic`. `kassert`
  panics when its condition is false.
- `kcore.pmm`: `PageAllocator` builds a page bitmap from a list of
  `MemoryMapEntry(base, length, usable)` values.
  - `alloc` returns the physical address of a free 4 KiB page, and `free`
    gives it back.
  - `info` returns a `MemoryInfo` with the `used`, `free`, `reserved`,
    `usable` and `total` byte counts.
- `kcore.slab`: `SlabAllocator(pages)` takes its pages from any object that
  has an `alloc()` method, such as a `PageAllocator`. It groups objects into
  16-byte size classes. `alloc(size)` returns the higher-half address of a
  zeroed object, and `free(address, size)` puts the object back on the free
  list of its class.
- `kcore.vfs`: the file-system core, made of `Vnode`, `Vfs` and `VnodeType`.
  - `lookup(path, root, cwd)` resolves absolute and relative paths. It handles
    `.` and `..` and crosses mount points in both directions. The vnode it
    returns carries a reference the caller holds.
  - The module-level helpers `create`, `mkdir`, `link`, `unlink`, `read`,
    `write`, `close`, `resolve`, `readdir`, `ioctl` and `vlink_set` dispatch to
    the vnode operations.
  - Operations that a file system does not provide raise `OSError(ENOSYS)`.
- `kcore.pagecache`: `PageCache` is a four-level radix tree of page buffers.
  It has two methods, `get` and `get_or_create`.
- `kcore.tmpfs`: `mount(mountpoint)` returns a `Vfs` whose nodes are
  `TmpfsVnode`s. Directories keep their entries in creation order. File
  contents live in a `PageCache`, and holes read back as zeros.
- `kcore.devfs`: `Devfs(rootfs)` creates `/dev` on the root file system and
  mounts a device file system there.
  - `register(name, device, directory=None)` creates a node whose reads,
    writes and ioctls go to a `Device`.
- `kcore.pipefs`: `new_pipe()` returns a `(read_end, write_end)` pair of
  `PipeEnd` nodes that share a 4 KiB ring buffer.
  - Reads block until enough data has arrived or the write end is closed.
  - Writes block while the buffer is full.
- `kcore.initrd`: `extract(root, archive)` creates every directory and file of
  a ustar/GNU tar archive under `root`. It passes over long-name and long-link
  records, and it expects a parent directory to come before its contents.
- `kcore.tty`: `Tty(output, rows, cols)` is the console device.
  - `kbd_in(char, mod)` feeds key presses into it, with `Modifier` flags for
    Ctrl and the arrow keys.
  - Input is line-buffered in canonical mode and handed out by count in raw
    mode.
  - Echo, erase, CR/NL translation and EOF are handled according to its
    `Termios` settings.
  - `ioctl` supports `TIOCGWINSZ`, which returns a `WinSize`, as well as
    `TCGETS` and `TCSETS` / `TCSETSW` / `TCSETSF`.
  - `register_tty(devfs, tty)` installs the console as `tty0`.

## Example

```python
import io
import tarfile

from kcore import tmpfs, vfs
from kcore.devfs import Devfs
from kcore.initrd import extract
from kcore.tty import Tty, register_tty

# Build a small initrd in memory.
buf = io.BytesIO()
with tarfile.open(fileobj=buf, mode="w", format=tarfile.USTAR_FORMAT) as tar:
    etc = tarfile.TarInfo("etc")
    etc.type = tarfile.DIRTYPE
    tar.addfile(etc)
    motd = b"hello\n"
    info = tarfile.TarInfo("etc/motd")
    info.size = len(motd)
    tar.addfile(info, io.BytesIO(motd))

rootfs = tmpfs.mount(None)
root = rootfs.root
extract(root, buf.getvalue())

node = vfs.lookup("/etc/motd", root, root)
print(vfs.read(node, 4096, 0, 0))          # b'hello\n'

devfs = Devfs(rootfs)
echoed = []
tty = Tty(echoed.append, rows=25, cols=80)
register_tty(devfs, tty)
for key in "hi\n":
    tty.kbd_in(key, 0)
print(vfs.read(vfs.lookup("/dev/tty0", root, root), 16, 0, 0))  # b'hi\n'
```

Errors are raised as `OSError` with the matching `errno` code, for example
`ENOENT`, `ENOTDIR`, `EISDIR` or `ENOSYS`. A failed internal invariant raises
`KernelPanic`.

## What it does not do

`kcore` is a library and has no command to run. It has no scheduler, no
processes and no system calls. Blocking pipe and TTY reads wait on ordinary
Python threads. The terminal draws nothing itself: its echo and any data
written to it are passed to the `output` callable you supply. Nothing is
persisted, so every file system disappears when the process ends.