"""
Output rendering: banners, summary blocks and activation hints.

Widths are measured in terminal cells (wcwidth) so labels and values
containing box-drawing characters or CJK text line up.
"""

from __future__ import annotations

import sys
from typing import Iterable, TextIO

from wcwidth import wcswidth


BANNER_WIDTH = 62
RULE_WIDTH = 64
RULE_CHAR = "─"


def display_width(text: str) -> int:
    """Terminal cell width of text (falls back to len for control characters)."""
    width = wcswidth(text)
    return width if width >= 0 else len(text)


def pad(text: str, width: int) -> str:
    """Right-pad text with spaces to width terminal cells."""
    return text + " " * max(0, width - display_width(text))


def format_size(num_bytes: int) -> str:
    """Human-readable size in the style of du -h (e.g. 28M)."""
    if num_bytes < 1024:
        return f"{num_bytes}B"
    size = float(num_bytes)
    for unit in ("K", "M", "G"):
        size /= 1024
        if size < 1024 or unit == "G":
            break
    return f"{size:.0f}{unit}" if size >= 10 else f"{size:.1f}{unit}"


def banner(title: str, width: int = BANNER_WIDTH) -> list[str]:
    """Boxed, centred title lines."""
    inner = display_width(title)
    left = max(0, (width - inner) // 2)
    right = max(0, width - inner - left)
    return [
        "╔" + "═" * width + "╗",
        "║" + " " * left + title + " " * right + "║",
        "╚" + "═" * width + "╝",
    ]


def summary_block(title: str, rows: Iterable[tuple[str, str]], width: int = RULE_WIDTH) -> list[str]:
    """
    Summary block: ruled title followed by aligned "Label:  value" rows.

    Args:
        title: Block heading, e.g. "Go Installation Summary"
        rows: (label, value) pairs
        width: Rule width in cells

    Returns:
        Lines of the block
    """
    rows = list(rows)
    label_width = max((display_width(label) for label, _ in rows), default=0) + 2
    lines = [RULE_CHAR * width, title, RULE_CHAR * width]
    for label, value in rows:
        lines.append(pad(f"{label}:", label_width) + value)
    lines.append(RULE_CHAR * width)
    return lines


def activation_hint(rc_file: str) -> list[str]:
    return [
        "To activate now, run:",
        f"  source {rc_file}",
        "Or open a new terminal.",
    ]


def print_lines(lines: Iterable[str], stream: TextIO | None = None) -> None:
    stream = stream or sys.stdout
    for line in lines:
        print(line, file=stream)
    stream.flush()


def print_banner(title: str, stream: TextIO | None = None) -> None:
    print_lines(["", *banner(title), ""], stream)


def print_summary(title: str, rows: Iterable[tuple[str, str]], notes: Iterable[str] = (), stream: TextIO | None = None) -> None:
    lines = ["", *summary_block(title, rows), ""]
    notes = list(notes)
    if notes:
        lines.extend(notes)
        lines.append("")
    print_lines(lines, stream)
