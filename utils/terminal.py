"""One-line terminal rendering of diff records.

    [-] path   only in A  (red)
    [+] path   only in B  (green)
    [≠] path   changed    (yellow)
"""
import os
import sys
from typing import Literal, TextIO

from models.diff import Changed, DiffRecord, OnlyInA, OnlyInB

_RED = "\033[91m"
_GREEN = "\033[92m"
_YELLOW = "\033[93m"
_RESET = "\033[0m"

_GLYPHS = {
    OnlyInA: ("-", _RED),
    OnlyInB: ("+", _GREEN),
    Changed: ("≠", _YELLOW),
}


def use_color(mode: Literal["auto", "always", "never"], stream: TextIO) -> bool:
    if mode == "always":
        return True
    if mode == "never":
        return False
    if os.environ.get("NO_COLOR"):
        return False
    return hasattr(stream, "isatty") and stream.isatty()


def format_record(record: DiffRecord, color: bool = False) -> str:
    glyph, ansi = _GLYPHS[type(record)]
    if color:
        glyph = f"{ansi}{glyph}{_RESET}"
    return f"[{glyph}] {record.path.as_posix()}"


class RecordPrinter:
    """Callable handed to the run loop; prints each record as it is found."""

    def __init__(self, mode: Literal["auto", "always", "never"] = "auto", stream: TextIO | None = None):
        self.stream = stream or sys.stdout
        self.color = use_color(mode, self.stream)

    def __call__(self, record: DiffRecord) -> None:
        print(format_record(record, self.color), file=self.stream, flush=True)
