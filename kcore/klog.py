"""Character-level kernel log sink and the small printf dialect used by it."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

_U64 = (1 << 64) - 1
_SIGN_BIT = 1 << 63

_hook: Callable[[str], None] | None = None


def set_hook(hook: Callable[[str], None] | None) -> None:
    """Install the function that receives every logged character.

    Passing ``None`` restores the default, which drops everything.
    """
    global _hook
    _hook = hook


def putc(char: str) -> None:
    """Send a single character to the log sink."""
    if _hook is not None:
        _hook(char)


def puts(text: str) -> None:
    """Send every character of ``text`` to the log sink, one at a time."""
    for char in text:
        putc(char)


def _take(values: Iterator[Any]) -> Any:
    try:
        return next(values)
    except StopIteration:
        raise TypeError("not enough arguments for format string") from None


def _as_char(value: Any) -> str:
    if isinstance(value, str):
        return value[:1]
    return chr(int(value) & 0xFF)


def kformat(fmt: str, *args: Any) -> str:
    """Render ``fmt`` with the kernel printf conventions.

    Supported conversions: ``%u`` (unsigned 64-bit decimal), ``%d``/``%i``
    (signed 64-bit decimal), ``%x``/``%p`` (``0x`` followed by 16 upper-case
    hex digits), ``%c`` and ``%s``. Any other conversion character is
    swallowed without consuming an argument.
    """
    out: list[str] = []
    values = iter(args)
    chars = iter(fmt)

    for char in chars:
        if char != "%":
            out.append(char)
            continue

        spec = next(chars, None)
        if spec is None:
            break

        if spec == "u":
            out.append(str(int(_take(values)) & _U64))
        elif spec in ("x", "p"):
            out.append(f"0x{int(_take(values)) & _U64:016X}")
        elif spec in ("d", "i"):
            value = int(_take(values)) & _U64
            if value & _SIGN_BIT:
                value -= 1 << 64
            out.append(str(value))
        elif spec == "c":
            out.append(_as_char(_take(values)))
        elif spec == "s":
            out.append(str(_take(values)))

    return "".join(out)


def kprintf(fmt: str, *args: Any) -> None:
    """Format ``fmt`` with :func:`kformat` and write the result to the log."""
    puts(kformat(fmt, *args))