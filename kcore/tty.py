"""Kernel console terminal: line discipline, termios state and its device node."""

from __future__ import annotations

import enum
import errno
import os
import threading
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Any

from kcore.devfs import Device, Devfs, DevfsVnode
from kcore.klog import kprintf

NCCS = 32

VINTR = 0
VQUIT = 1
VERASE = 2
VKILL = 3
VEOF = 4
VTIME = 5
VMIN = 6
VSWTC = 7
VSTART = 8
VSTOP = 9
VSUSP = 10
VEOL = 11
VREPRINT = 12
VDISCARD = 13
VWERASE = 14
VLNEXT = 15

CINTR = 0x03
CQUIT = 0x1C
CERASE = 0x7F
CKILL = 0x15
CEOF = 0x04
CTIME = 0
CMIN = 1
CSTART = 0x11
CSTOP = 0x13
CSUSP = 0x1A
CEOL = 0
CREPRINT = 0x12
CWERASE = 0x17

# c_iflag
BRKINT = 0o2
INLCR = 0o100
IGNCR = 0o200
ICRNL = 0o400
IXON = 0o2000
IXANY = 0o4000
IMAXBEL = 0o20000

# c_oflag
OPOST = 0o1
ONLCR = 0o4
XTABS = 0o14000

# c_cflag
CS7 = 0o40
CREAD = 0o200
PARENB = 0o400
HUPCL = 0o2000

# c_lflag
ISIG = 0o1
ICANON = 0o2
ECHO = 0o10
ECHOE = 0o20
ECHOCTL = 0o1000
ECHOKE = 0o4000
IEXTEN = 0o100000

B9600 = 0o15

TTYDEF_IFLAG = BRKINT | ICRNL | IMAXBEL | IXON | IXANY
TTYDEF_OFLAG = OPOST | ONLCR | XTABS
TTYDEF_LFLAG = ECHO | ICANON | ISIG | IEXTEN | ECHOE | ECHOKE | ECHOCTL
TTYDEF_CFLAG = CREAD | CS7 | PARENB | HUPCL
TTYDEF_SPEED = B9600

TCGETS = 0x5401
TCSETS = 0x5402
TCSETSW = 0x5403
TCSETSF = 0x5404
TIOCGWINSZ = 0x5413

CONTROL_DEL = 127
_BACKSPACE = 0x08
_NL = 0x0A
_CR = 0x0D
_ESCAPE_PREFIX = b"\x1b["
_DELETE_SEQUENCE = b"\x1b[3~"
_ERASE_ECHO = b"\b \b"


class Modifier(enum.IntFlag):
    """Keyboard modifier state accompanying a key press."""

    NONE = 0
    LCTRL = 1
    RCTRL = 2
    ARROW = 4
    LSHIFT = 8
    RSHIFT = 16
    LALT = 32
    RALT = 64


@dataclass
class Termios:
    """Terminal settings as exchanged through ``TCGETS``/``TCSETS``."""

    iflag: int = 0
    oflag: int = 0
    cflag: int = 0
    lflag: int = 0
    cc: list[int] = field(default_factory=lambda: [0] * NCCS)
    ispeed: int = 0
    ospeed: int = 0

    @classmethod
    def defaults(cls) -> Termios:
        """Settings a freshly initialised console starts with."""
        cc = [0] * NCCS
        cc[VINTR] = CINTR
        cc[VQUIT] = CQUIT
        cc[VERASE] = CERASE
        cc[VKILL] = CKILL
        cc[VEOF] = CEOF
        cc[VTIME] = CTIME
        cc[VMIN] = CMIN
        cc[VSWTC] = 0
        cc[VSTART] = CSTART
        cc[VSTOP] = CSTOP
        cc[VSUSP] = CSUSP
        cc[VEOL] = CEOL
        cc[VREPRINT] = CREPRINT
        cc[VDISCARD] = 0
        cc[VWERASE] = CWERASE
        cc[VLNEXT] = 0
        return cls(
            iflag=TTYDEF_IFLAG,
            oflag=TTYDEF_OFLAG,
            cflag=TTYDEF_CFLAG,
            lflag=TTYDEF_LFLAG,
            cc=cc,
            ispeed=TTYDEF_SPEED,
            ospeed=TTYDEF_SPEED,
        )

    def copy(self) -> Termios:
        """Return an independent copy of these settings."""
        return replace(self, cc=list(self.cc))


@dataclass(frozen=True)
class WinSize:
    """Terminal dimensions in character cells."""

    rows: int
    cols: int
    xpixel: int = 0
    ypixel: int = 0


def _discard(data: bytes) -> None:
    del data


class Tty(Device):
    """The kernel console: keyboard input is buffered here and echoed to ``output``."""

    def __init__(
        self,
        output: Callable[[bytes], Any] | None = None,
        rows: int = 0,
        cols: int = 0,
    ) -> None:
        self.rows = rows
        self.cols = cols
        self.termios = Termios.defaults()
        self._output = output if output is not None else _discard
        self._buf = bytearray()
        self._lock = threading.Lock()
        self._waitlist = threading.Condition(self._lock)

    @property
    def pending(self) -> bytes:
        """Input that has been typed but not yet read."""
        with self._lock:
            return bytes(self._buf)

    def _scan(self, size: int) -> tuple[bool, int, bool]:
        termios = self.termios
        canonical = bool(termios.lflag & ICANON)
        eol = termios.cc[VEOL] or _NL
        eof = termios.cc[VEOF]

        for i, c in enumerate(self._buf):
            # Canonical input is line-buffered: a line ends at EOL or EOF.
            if canonical and (c == eol or c == eof):
                return True, i + 1 if c == eol else i, c == eof
            # Raw input is handed out as soon as enough bytes are there.
            if not canonical and i + 1 == size:
                return True, i + 1, False

        return False, 0, False

    def read(self, size: int, offset: int = 0, flags: int = 0) -> bytes:
        """Return up to ``size`` bytes of input, waiting for a line or enough bytes."""
        with self._waitlist:
            while True:
                ready, end, eof_found = self._scan(size)
                if ready:
                    break
                self._waitlist.wait()

            count = min(size, end)
            out = bytes(self._buf[:count])
            del self._buf[:count]

            if eof_found:
                del self._buf[-1:]

        return out

    def write(self, data: bytes, offset: int = 0, flags: int = 0) -> int:
        """Send ``data`` straight to the terminal output."""
        data = bytes(data)
        self._output(data)
        return len(data)

    def ioctl(self, op: int, arg: Any = None) -> Any:
        """Handle ``TIOCGWINSZ``, ``TCGETS`` and the ``TCSETS`` family."""
        if op == TIOCGWINSZ:
            return WinSize(rows=self.rows, cols=self.cols)

        if op == TCGETS:
            with self._lock:
                return self.termios.copy()

        if op in (TCSETS, TCSETSF, TCSETSW):
            if not isinstance(arg, Termios):
                raise TypeError("expected Termios settings")
            with self._lock:
                self.termios = arg.copy()
            return None

        raise OSError(errno.ENOSYS, os.strerror(errno.ENOSYS))

    @staticmethod
    def _translate(c: int, mod: int) -> int:
        if c == _BACKSPACE:
            c = CONTROL_DEL

        if mod & Modifier.LCTRL:
            if ord("a") <= c <= ord("z"):
                c -= 32
            c = (c - 64) & 0xFF

        return c

    def _discipline(self, c: int) -> tuple[int, bool, bool]:
        termios = self.termios

        if c == _CR and not termios.iflag & IGNCR and termios.iflag & ICRNL:
            c = _NL
        elif c == _NL and termios.iflag & INLCR:
            c = _CR

        if not termios.lflag & ICANON:
            return c, False, True

        eol = termios.cc[VEOL] or _NL
        notify = c == eol
        handled = False

        if termios.cc[VEOF] == c:
            self._buf.append(c)
            handled = True

        if termios.cc[VERASE] == c:
            if self._buf:
                if termios.lflag & ECHOE:
                    self._output(_ERASE_ECHO)
                self._buf.pop()
            handled = True

        return c, handled, notify

    def kbd_in(self, char: str | int, mod: int = Modifier.NONE) -> None:
        """Feed one key press from the keyboard into the terminal."""
        c = (ord(char) if isinstance(char, str) else int(char)) & 0xFF
        is_arrow = bool(mod & Modifier.ARROW)
        is_del = c == CONTROL_DEL
        handled = False
        notify = False

        with self._waitlist:
            if not is_del:
                c = self._translate(c, mod)
                if not is_arrow:
                    c, handled, notify = self._discipline(c)

            echo = bool(self.termios.lflag & ECHO)

            if is_arrow or is_del:
                escape = _ESCAPE_PREFIX + bytes([c]) if is_arrow else _DELETE_SEQUENCE
                self._buf += escape
                if echo:
                    self._output(escape)
                    handled = True
            elif not handled:
                self._buf.append(c)

            if echo and not handled:
                self._output(bytes([c]))

            if notify:
                self._waitlist.notify_all()


def register_tty(devfs: Devfs, tty: Tty | None = None) -> DevfsVnode:
    """Expose ``tty`` (a new console when omitted) as ``tty0`` in ``devfs``."""
    kprintf("[  log  ] initializing kernel tty\n")
    if tty is None:
        tty = Tty()
    return devfs.register("tty0", tty)