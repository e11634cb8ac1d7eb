"""Terminal helpers for CLI output: colors, status lines, tables and a spinner."""

from __future__ import annotations

import os
import sys
from collections.abc import Callable, Collection, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from datetime import datetime
from typing import TextIO, TypeVar

T = TypeVar("T")


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"


def _supports_color(stream: TextIO | None = None) -> bool:
    """Check if terminal supports color output."""
    stream = stream or sys.stdout
    if os.environ.get("NO_COLOR"):
        return False
    if not _is_tty(stream):
        return False
    if os.environ.get("TERM") == "dumb":
        return False
    return True


def _is_tty(stream: TextIO) -> bool:
    return hasattr(stream, "isatty") and stream.isatty()


def _ts() -> str:
    return datetime.now().strftime("%H:%M:%S")


def colorize(text: str, color: str, bold: bool = False, stream: TextIO | None = None) -> str:
    """Apply color to text if terminal supports it."""
    if not _supports_color(stream):
        return text
    prefix = (Colors.BOLD if bold else "") + color
    return f"{prefix}{text}{Colors.RESET}"


def print_log(message: str, stream: TextIO | None = None) -> None:
    """Print a timestamped progress line."""
    stream = stream or sys.stdout
    print(f"{_ts()} {colorize('>', Colors.DIM, stream=stream)} {message}", file=stream)


def print_success(message: str, stream: TextIO | None = None) -> None:
    """Print success message in green."""
    stream = stream or sys.stdout
    print(
        f"{_ts()} " + colorize("✓", Colors.GREEN, bold=True, stream=stream) + " " + message,
        file=stream,
    )


def print_error(message: str, stream: TextIO | None = None) -> None:
    """Print error message in red."""
    stream = stream or sys.stderr
    print(colorize("✗", Colors.RED, bold=True, stream=stream) + " " + message, file=stream)


def print_warning(message: str, stream: TextIO | None = None) -> None:
    """Print warning message in yellow."""
    stream = stream or sys.stdout
    print(
        f"{_ts()} " + colorize("!", Colors.YELLOW, bold=True, stream=stream) + " " + message,
        file=stream,
    )


def print_header(message: str, stream: TextIO | None = None) -> None:
    """Print section header in bold."""
    stream = stream or sys.stdout
    print("\n" + colorize(message, Colors.CYAN, bold=True, stream=stream), file=stream)


def print_table(
    headers: Sequence[str],
    rows: Sequence[Sequence[object]],
    widths: Sequence[int],
    stream: TextIO | None = None,
    *,
    clip: Collection[int] = (),
) -> None:
    """Print a pipe-separated table.

    ``widths`` pads every column except the last. Only the column indexes
    in ``clip`` are cut to their width; other cells overflow as-is.
    """
    stream = stream or sys.stdout

    def _line(cells: Sequence[object]) -> str:
        out: list[str] = []
        for idx, cell in enumerate(cells):
            text = str(cell)
            if idx < len(widths):
                if idx in clip:
                    text = text[: widths[idx]]
                text = text.ljust(widths[idx])
            out.append(text)
        return " | ".join(out)

    print(_line(headers), file=stream)
    print("-" * 93, file=stream)
    for row in rows:
        print(_line(row), file=stream)


def print_summary_box(
    title: str, items: Sequence[tuple[str, str | int]], stream: TextIO | None = None
) -> None:
    """Print a formatted summary box with key-value pairs."""
    stream = stream or sys.stdout
    max_key_len = max((len(k) for k, _ in items), default=0)

    print(colorize(f"\n{title}", Colors.CYAN, bold=True, stream=stream), file=stream)
    print(colorize("─" * 60, Colors.DIM, stream=stream), file=stream)
    for key, value in items:
        value_str = str(value)
        if isinstance(value, int) and value > 0 and "fail" in key.lower():
            value_str = colorize(value_str, Colors.RED, bold=True, stream=stream)
        elif isinstance(value, int) and value > 0:
            value_str = colorize(value_str, Colors.GREEN, bold=True, stream=stream)
        print(f"  {key.ljust(max_key_len)}  {value_str}", file=stream)
    print(colorize("─" * 60, Colors.DIM, stream=stream), file=stream)


class Spinner:
    """ASCII spinner that redraws while a pending future is still running.

    It only polls ``future.done()``; it never touches the future's result
    until the work has finished.
    """

    FRAMES = "|/-\\"

    def __init__(
        self,
        message: str,
        *,
        enabled: bool = True,
        stream: TextIO | None = None,
        interval: float = 0.1,
    ) -> None:
        self.message = message
        self.enabled = enabled
        self.stream = stream or sys.stdout
        self.interval = interval
        self.frames_drawn = 0

    def wait(self, future: Future[T]) -> T:
        if self.enabled:
            while not future.done():
                frame = self.FRAMES[self.frames_drawn % len(self.FRAMES)]
                self.stream.write(f"\r{_ts()} {self.message} {frame}")
                self.stream.flush()
                self.frames_drawn += 1
                wait_futures([future], timeout=self.interval)
            self.stream.write("\r" + " " * (len(self.message) + 12) + "\r")
            self.stream.flush()
        return future.result()


def spinner_enabled(requested: bool, quiet: bool, stream: TextIO | None = None) -> bool:
    """Spinner runs only when asked for, not quiet, and attached to a TTY."""
    stream = stream or sys.stdout
    return requested and not quiet and _is_tty(stream)


def run_with_spinner(
    fn: Callable[[], T],
    message: str,
    *,
    enabled: bool = True,
    stream: TextIO | None = None,
) -> T:
    """Run ``fn`` while a spinner animates; without a spinner call it inline."""
    if not enabled:
        return fn()
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="trackerops-call")
    try:
        future = executor.submit(fn)
        return Spinner(message, enabled=True, stream=stream).wait(future)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


__all__ = [
    "Colors",
    "Spinner",
    "colorize",
    "print_error",
    "print_header",
    "print_log",
    "print_success",
    "print_summary_box",
    "print_table",
    "print_warning",
    "run_with_spinner",
    "spinner_enabled",
]
