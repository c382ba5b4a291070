"""
Console output formatting for MindCanvas.

Provides styled terminal output for intention processing and task execution.
"""

import sys
from typing import Optional


class Style:
    """ANSI escape codes for terminal styling."""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"


class StatusIcon:
    """Status icons for different operations."""
    SUCCESS = "✓"
    FAILURE = "✗"
    WARNING = "⚠"
    INFO = "ℹ"
    RUNNING = "●"
    PENDING = "○"
    ARROW = "→"
    BULLET = "•"
    BRAIN = "🧠"
    BOLT = "⚡"
    STOP = "🚫"


class Console:
    """
    Styled console output for MindCanvas.

    - Colored status indicators
    - Intention and task activity markers
    - Progress bars for the processing pipeline
    """

    _enabled = True  # Can disable colors for non-TTY
    _verbose = False

    @classmethod
    def enable_colors(cls, enabled: bool = True) -> None:
        """Enable or disable colored output."""
        cls._enabled = enabled

    @classmethod
    def set_verbose(cls, verbose: bool = True) -> None:
        """Enable verbose output mode."""
        cls._verbose = verbose

    @classmethod
    def _style(cls, text: str, *styles: str) -> str:
        """Apply styles to text if colors are enabled."""
        if not cls._enabled or not sys.stdout.isatty():
            return text
        style_str = "".join(styles)
        return f"{style_str}{text}{Style.RESET}"

    @classmethod
    def _emit(cls, icon: str, message: str, detail: Optional[str]) -> None:
        if detail:
            detail_text = cls._style(f"({detail})", Style.DIM)
            print(f"{icon} {message} {detail_text}")
        else:
            print(f"{icon} {message}")

    # === Status Messages ===

    @classmethod
    def success(cls, message: str, detail: Optional[str] = None) -> None:
        """Print a success message."""
        icon = cls._style(StatusIcon.SUCCESS, Style.GREEN, Style.BOLD)
        cls._emit(icon, cls._style(message, Style.GREEN), detail)

    @classmethod
    def error(cls, message: str, detail: Optional[str] = None) -> None:
        """Print an error message."""
        icon = cls._style(StatusIcon.FAILURE, Style.RED, Style.BOLD)
        cls._emit(icon, cls._style(message, Style.RED), detail)

    @classmethod
    def warning(cls, message: str, detail: Optional[str] = None) -> None:
        """Print a warning message."""
        icon = cls._style(StatusIcon.WARNING, Style.YELLOW)
        cls._emit(icon, cls._style(message, Style.YELLOW), detail)

    @classmethod
    def info(cls, message: str, detail: Optional[str] = None) -> None:
        """Print an info message."""
        icon = cls._style(StatusIcon.INFO, Style.BLUE)
        cls._emit(icon, message, detail)

    @classmethod
    def debug(cls, message: str) -> None:
        """Print a debug message (verbose mode only)."""
        if cls._verbose:
            print(cls._style(f"  {StatusIcon.BULLET} {message}", Style.DIM))

    # === Intention Activity ===

    @classmethod
    def intention_start(cls, text: str) -> None:
        """Log an intention entering the processing pipeline."""
        icon = cls._style(StatusIcon.BRAIN, Style.MAGENTA)
        preview = text[:60] + "..." if len(text) > 60 else text
        label = cls._style("INTENTION", Style.MAGENTA, Style.BOLD)
        print(f"\n{icon} {label}: {preview}")

    @classmethod
    def task_spawned(cls, title: str, reasoning: str = "") -> None:
        """Log a task card materializing."""
        icon = cls._style(StatusIcon.PENDING, Style.CYAN)
        name = cls._style(title, Style.CYAN, Style.BOLD)
        if reasoning:
            print(f"  {icon} {name} {cls._style('- ' + reasoning, Style.DIM)}")
        else:
            print(f"  {icon} {name}")

    @classmethod
    def task_step(cls, title: str, progress: int, step: str) -> None:
        """Log an execution step."""
        icon = cls._style(StatusIcon.RUNNING, Style.CYAN)
        pct = cls._style(f"{progress:3d}%", Style.BOLD)
        print(f"  {icon} [{pct}] {title}: {step}")

    @classmethod
    def task_complete(cls, title: str, result: str = "") -> None:
        """Log a completed task."""
        icon = cls._style(StatusIcon.SUCCESS, Style.GREEN)
        name = cls._style(title, Style.GREEN, Style.BOLD)
        print(f"  {icon} {name} completed")
        if result:
            for line in result.strip().splitlines():
                print(f"      {line}")

    @classmethod
    def task_failed(cls, title: str, error: str) -> None:
        """Log a failed task."""
        icon = cls._style(StatusIcon.FAILURE, Style.RED)
        err = cls._style(error, Style.DIM)
        print(f"  {icon} {title}: {err}")

    # === Progress ===

    @classmethod
    def progress(cls, current: int, total: int, label: str = "") -> None:
        """Show progress indicator."""
        pct = int((current / total) * 100) if total > 0 else 0
        bar_width = 30
        filled = int(bar_width * current / total) if total > 0 else 0
        bar = "█" * filled + "░" * (bar_width - filled)

        progress_text = cls._style(f"[{bar}] {pct}%", Style.CYAN)
        if label:
            print(f"\r  {progress_text} {label}", end="", flush=True)
        else:
            print(f"\r  {progress_text}", end="", flush=True)

        if current >= total:
            print()  # Newline when complete

    # === Separators and Headers ===

    @classmethod
    def header(cls, text: str, width: int = 60) -> None:
        """Print a section header."""
        line = cls._style("=" * width, Style.DIM)
        centered = text.center(width)
        header_text = cls._style(centered, Style.BOLD)
        print(f"\n{line}")
        print(header_text)
        print(line)

    @classmethod
    def separator(cls, char: str = "─", width: int = 50) -> None:
        """Print a separator line."""
        line = cls._style(char * width, Style.DIM)
        print(line)

    @classmethod
    def usage(cls, status: str, rate_limited: bool = False) -> None:
        """Print a resource usage line."""
        if rate_limited:
            icon = cls._style(StatusIcon.STOP, Style.RED)
        else:
            icon = cls._style(StatusIcon.BOLT, Style.BLUE)
        print(f"{icon} {status}")


# Convenience singleton
console = Console()


# Import timing utilities
from .timing import (
    TimingCollector,
    TimingRecord,
    timing,
    async_timed_operation,
    enable_timing,
    disable_timing,
)

__all__ = [
    # Console
    "Style",
    "StatusIcon",
    "Console",
    "console",
    # Timing
    "TimingCollector",
    "TimingRecord",
    "timing",
    "async_timed_operation",
    "enable_timing",
    "disable_timing",
]
