import errno
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from kcore import tmpfs, vfs
from kcore.devfs import Devfs
from kcore.tty import (
    CEOF,
    CERASE,
    CINTR,
    ECHO,
    ICANON,
    ICRNL,
    IGNCR,
    INLCR,
    TCGETS,
    TCSETS,
    TCSETSF,
    TCSETSW,
    TIOCGWINSZ,
    TTYDEF_LFLAG,
    VEOF,
    VERASE,
    Modifier,
    Termios,
    Tty,
    WinSize,
    register_tty,
)


def _type(tty, text, mod=Modifier.NONE):
    for ch in text:
        tty.kbd_in(ch, mod)


def _make(**changes):
    out = bytearray()
    tty = Tty(out.extend, rows=25, cols=80)
    if changes:
        termios = tty.ioctl(TCGETS)
        for key, value in changes.items():
            setattr(termios, key, value)
        tty.ioctl(TCSETS, termios)
    return tty, out


def test_defaults():
    tty = Tty()
    assert tty.termios.cc[VEOF] == CEOF
    assert tty.termios.cc[VERASE] == CERASE
    assert tty.termios.lflag == TTYDEF_LFLAG
    assert tty.termios.iflag & ICRNL


def test_canonical_line_with_cr_translated():
    tty, out = _make()
    _type(tty, "hi\r")
    assert tty.read(100) == b"hi\n"
    assert out == b"hi\n"


def test_partial_read_of_line():
    tty, _ = _make()
    _type(tty, "hello\n")
    assert tty.read(2) == b"he"
    assert tty.read(100) == b"llo\n"
    assert tty.pending == b""


def test_erase_removes_last_char_and_echoes():
    tty, out = _make()
    _type(tty, "abc\b\n")
    assert tty.read(100) == b"ab\n"
    assert out == b"abc" + b"\b \b" + b"\n"


def test_erase_on_empty_buffer_does_nothing():
    tty, out = _make()
    tty.kbd_in(chr(CERASE & 0x7F) if False else "\b")
    assert tty.pending == b""
    assert out == b""


def test_eof_returns_pending_without_eof_char():
    tty, out = _make()
    _type(tty, "ab")
    tty.kbd_in("d", Modifier.LCTRL)
    assert tty.pending == b"ab" + bytes([CEOF])
    assert tty.read(100) == b"ab"
    assert tty.pending == b""
    assert out == b"ab"


def test_arrow_key_produces_escape_sequence():
    tty, out = _make()
    tty.kbd_in("A", Modifier.ARROW)
    tty.kbd_in("\n")
    assert tty.read(100) == b"\x1b[A\n"
    assert out.startswith(b"\x1b[A")


def test_delete_key_produces_escape_sequence():
    tty, out = _make()
    tty.kbd_in(chr(127))
    assert tty.pending == b"\x1b[3~"
    assert out == b"\x1b[3~"


def test_echo_disabled():
    tty, out = _make(lflag=TTYDEF_LFLAG & ~ECHO)
    _type(tty, "secret\n")
    assert out == b""
    assert tty.read(100) == b"secret\n"


def test_raw_mode_reads_exact_count():
    tty, _ = _make(lflag=TTYDEF_LFLAG & ~ICANON)
    _type(tty, "xyz")
    assert tty.read(2) == b"xy"
    assert tty.read(1) == b"z"


def test_raw_mode_control_character():
    tty, _ = _make(lflag=TTYDEF_LFLAG & ~ICANON)
    tty.kbd_in("c", Modifier.LCTRL)
    assert tty.read(1) == bytes([CINTR])


def test_raw_mode_keeps_cr_with_igncr():
    tty, _ = _make(lflag=TTYDEF_LFLAG & ~ICANON, iflag=ICRNL | IGNCR)
    tty.kbd_in("\r")
    assert tty.read(1) == b"\r"


def test_inlcr_translates_newline():
    tty, _ = _make(lflag=TTYDEF_LFLAG & ~ICANON, iflag=INLCR)
    tty.kbd_in("\n")
    assert tty.read(1) == b"\r"


def test_canonical_read_blocks_until_line_complete():
    tty, _ = _make()
    with ThreadPoolExecutor(max_workers=1) as pool:
        pending = pool.submit(tty.read, 64)
        _type(tty, "ok")
        time.sleep(0.05)
        assert not pending.done()
        tty.kbd_in("\n")
        assert pending.result(timeout=5) == b"ok\n"


def test_raw_read_blocks_until_enough_bytes():
    tty, _ = _make(lflag=TTYDEF_LFLAG & ~ICANON)
    with ThreadPoolExecutor(max_workers=1) as pool:
        pending = pool.submit(tty.read, 3)
        _type(tty, "ab")
        time.sleep(0.05)
        assert not pending.done()
        tty.kbd_in("c")
        assert pending.result(timeout=5) == b"abc"


def test_write_goes_to_output():
    tty, out = _make()
    assert tty.write(b"hello") == 5
    assert out == b"hello"


def test_winsize():
    tty, _ = _make()
    assert tty.ioctl(TIOCGWINSZ) == WinSize(rows=25, cols=80)


def test_tcgets_returns_independent_copy():
    tty, _ = _make()
    termios = tty.ioctl(TCGETS)
    termios.cc[VEOF] = 0
    termios.lflag = 0
    assert tty.termios.cc[VEOF] == CEOF
    assert tty.termios.lflag == TTYDEF_LFLAG


@pytest.mark.parametrize("op", [TCSETS, TCSETSW, TCSETSF])
def test_tcsets_family(op):
    tty, _ = _make()
    new = Termios()
    new.lflag = ECHO
    tty.ioctl(op, new)
    assert tty.ioctl(TCGETS) == new


def test_unknown_ioctl():
    tty, _ = _make()
    with pytest.raises(OSError) as info:
        tty.ioctl(0xDEAD)
    assert info.value.errno == errno.ENOSYS


def test_register_tty_in_devfs():
    rootfs = tmpfs.mount()
    devfs = Devfs(rootfs)
    out = bytearray()
    tty = Tty(out.extend)
    node = register_tty(devfs, tty)
    found = vfs.lookup("/dev/tty0", rootfs.root, rootfs.root)
    assert found is node
    assert vfs.write(found, b"boot") == 4
    assert out == b"boot"
    tty.kbd_in("q")
    tty.kbd_in("\n")
    assert vfs.read(found, 10) == b"q\n"