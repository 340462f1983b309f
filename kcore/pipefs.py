"""Anonymous pipes: a page-sized ring buffer shared by a read and a write end."""

from __future__ import annotations

import threading

from kcore.vfs import Vnode, VnodeType

PIPE_BUF_SIZE = 4096


class _Pipe:
    def __init__(self) -> None:
        self.buf = bytearray(PIPE_BUF_SIZE)
        self.read = 0
        self.write = 0
        self.lock = threading.Lock()
        self.readers = threading.Condition(self.lock)
        self.writers = threading.Condition(self.lock)
        self.read_end: PipeEnd | None = None
        self.write_end: PipeEnd | None = None


class PipeEnd(Vnode):
    """One end of a pipe. Both ends share the same buffer."""

    def __init__(self, pipe: _Pipe) -> None:
        super().__init__(None, VnodeType.FILE)
        self._pipe = pipe

    def read(self, size: int, offset: int = 0, flags: int = 0) -> bytes:
        """Read ``size`` bytes, blocking until they arrive or the write end closes."""
        pipe = self._pipe
        out = bytearray()
        with pipe.lock:
            left = size
            while left > 0:
                while pipe.write == pipe.read and pipe.write_end is not None:
                    pipe.readers.wait()

                readsz = min(left, pipe.write - pipe.read)
                start = pipe.read % PIPE_BUF_SIZE
                end = PIPE_BUF_SIZE - start
                out += pipe.buf[start : start + min(readsz, end)]
                if readsz > end:
                    out += pipe.buf[: readsz - end]

                pipe.read += readsz
                left -= readsz

                if pipe.write_end is None:
                    break

                pipe.writers.notify_all()

        return bytes(out)

    def write(self, data: bytes, offset: int = 0, flags: int = 0) -> int:
        """Write all of ``data``, blocking while the buffer is full."""
        pipe = self._pipe
        view = memoryview(bytes(data))
        required = len(view) if len(view) <= PIPE_BUF_SIZE else 1
        written = 0

        with pipe.lock:
            while written < len(view):
                available = PIPE_BUF_SIZE - (pipe.write - pipe.read)
                while available < required:
                    pipe.writers.wait()
                    available = PIPE_BUF_SIZE - (pipe.write - pipe.read)

                writesz = min(len(view) - written, available)
                start = pipe.write % PIPE_BUF_SIZE
                end = PIPE_BUF_SIZE - start
                first = min(writesz, end)
                pipe.buf[start : start + first] = view[written : written + first]
                if writesz > end:
                    pipe.buf[: writesz - end] = view[written + end : written + writesz]

                pipe.write += writesz
                written += writesz
                pipe.readers.notify_all()

        return written

    def close(self) -> None:
        """Close this end; readers stop waiting for more data."""
        pipe = self._pipe
        with pipe.lock:
            if self is pipe.read_end:
                pipe.write_end = None
            elif self is pipe.write_end:
                pipe.write_end = None
                pipe.readers.notify_all()


def new_pipe() -> tuple[PipeEnd, PipeEnd]:
    """Create a pipe and return its ``(read_end, write_end)``."""
    pipe = _Pipe()
    reader = PipeEnd(pipe)
    writer = PipeEnd(pipe)
    pipe.read_end = reader
    pipe.write_end = writer
    return reader, writer