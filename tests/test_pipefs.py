import threading

from kcore import vfs
from kcore.pipefs import PIPE_BUF_SIZE, new_pipe


def test_write_then_read():
    reader, writer = new_pipe()
    assert writer.write(b"hello") == 5
    assert reader.read(5) == b"hello"


def test_through_vfs():
    reader, writer = new_pipe()
    assert vfs.write(writer, b"abc") == 3
    assert vfs.read(reader, 3) == b"abc"


def test_wrap_around_preserves_data():
    reader, writer = new_pipe()
    first = bytes(i % 251 for i in range(3000))
    second = bytes((i * 7) % 253 for i in range(3000))
    assert writer.write(first) == len(first)
    assert reader.read(len(first)) == first
    assert writer.write(second) == len(second)
    assert reader.read(len(second)) == second


def test_short_read_after_writer_closed():
    reader, writer = new_pipe()
    writer.write(b"xy")
    writer.close()
    assert reader.read(10) == b"xy"
    assert reader.read(10) == b""


def test_closing_read_end_stops_blocking():
    reader, writer = new_pipe()
    writer.write(b"ab")
    reader.close()
    assert reader.read(5) == b"ab"


def test_reader_blocks_until_filled():
    reader, writer = new_pipe()
    result = []
    thread = threading.Thread(target=lambda: result.append(reader.read(10)))
    thread.start()
    writer.write(b"0123")
    writer.write(b"456789")
    thread.join(timeout=5)
    assert not thread.is_alive()
    assert result == [b"0123456789"]


def test_reader_wakes_on_close():
    reader, writer = new_pipe()
    result = []
    thread = threading.Thread(target=lambda: result.append(reader.read(10)))
    thread.start()
    writer.write(b"abc")
    writer.close()
    thread.join(timeout=5)
    assert not thread.is_alive()
    assert result == [b"abc"]


def test_large_write_with_concurrent_reader():
    reader, writer = new_pipe()
    payload = bytes(i % 256 for i in range(PIPE_BUF_SIZE * 3 + 17))
    result = []
    thread = threading.Thread(target=lambda: result.append(reader.read(len(payload))))
    thread.start()
    assert writer.write(payload) == len(payload)
    thread.join(timeout=5)
    assert not thread.is_alive()
    assert result == [payload]


def test_full_buffer_write_fits_exactly():
    reader, writer = new_pipe()
    payload = b"z" * PIPE_BUF_SIZE
    assert writer.write(payload) == PIPE_BUF_SIZE
    assert reader.read(PIPE_BUF_SIZE) == payload


def test_ends_are_distinct_and_share_buffer():
    reader, writer = new_pipe()
    assert reader is not writer
    writer.write(b"q")
    assert reader.read(1) == b"q"