"""
Console output formatting for FlexResearch.

Styled terminal output for sessions, batches and work units.
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
    WAIT = "⏳"
    CHAT = "💬"

class Console:
    """
    Styled console output for FlexResearch.

    Class-level switches so every module shares the same output policy:
    - colors are dropped for non-TTY output
    - verbose mode shows debug and per-unit start lines
    - quiet mode silences everything except errors
    """

    _enabled = True
    _verbose = False
    _quiet = False

    @classmethod
    def enable_colors(cls, enabled: bool = True) -> None:
        """Enable or disable colored output."""
        cls._enabled = enabled

    @classmethod
    def set_verbose(cls, verbose: bool = True) -> None:
        """Enable verbose output mode."""
        cls._verbose = verbose

    @classmethod
    def set_quiet(cls, quiet: bool = True) -> None:
        """Silence non-error output."""
        cls._quiet = quiet

    @classmethod
    def _style(cls, text: str, *styles: str) -> str:
        """Apply styles to text if colors are enabled."""
        if not cls._enabled or not sys.stdout.isatty():
            return text
        return f"{''.join(styles)}{text}{Style.RESET}"

    @classmethod
    def _emit(cls, icon: str, message: str, detail: Optional[str] = None) -> None:
        if detail:
            print(f"{icon} {message} {cls._style(f'({detail})', Style.DIM)}")
        else:
            print(f"{icon} {message}")

    # === Status Messages ===

    @classmethod
    def success(cls, message: str, detail: Optional[str] = None) -> None:
        if cls._quiet:
            return
        icon = cls._style(StatusIcon.SUCCESS, Style.GREEN, Style.BOLD)
        cls._emit(icon, cls._style(message, Style.GREEN), detail)

    @classmethod
    def error(cls, message: str, detail: Optional[str] = None) -> None:
        icon = cls._style(StatusIcon.FAILURE, Style.RED, Style.BOLD)
        cls._emit(icon, cls._style(message, Style.RED), detail)

    @classmethod
    def warning(cls, message: str, detail: Optional[str] = None) -> None:
        if cls._quiet:
            return
        icon = cls._style(StatusIcon.WARNING, Style.YELLOW)
        cls._emit(icon, cls._style(message, Style.YELLOW), detail)

    @classmethod
    def info(cls, message: str, detail: Optional[str] = None) -> None:
        if cls._quiet:
            return
        cls._emit(cls._style(StatusIcon.INFO, Style.BLUE), message, detail)

    @classmethod
    def debug(cls, message: str, detail: Optional[str] = None) -> None:
        """Print a debug message (verbose mode only)."""
        if cls._quiet or not cls._verbose:
            return
        cls._emit(cls._style(StatusIcon.BULLET, Style.DIM), cls._style(message, Style.DIM), detail)

    # === Admission / Units / Batches ===

    @classmethod
    def admission_wait(cls, wait_seconds: float, in_window: int, limit: int) -> None:
        """Log a caller suspended by the admission window."""
        if cls._quiet:
            return
        icon = cls._style(StatusIcon.WAIT, Style.YELLOW)
        print(f"{icon} Rate limit reached ({in_window}/{limit}). Waiting {wait_seconds * 1000:.0f}ms...")

    @classmethod
    def unit_start(cls, unit_name: str) -> None:
        if cls._verbose and not cls._quiet:
            icon = cls._style(StatusIcon.RUNNING, Style.CYAN)
            print(f"{icon} {cls._style(unit_name, Style.CYAN, Style.BOLD)}: researching...")

    @classmethod
    def unit_complete(cls, unit_name: str, confidence: float, degraded: bool = False) -> None:
        if cls._quiet:
            return
        if degraded:
            icon = cls._style(StatusIcon.WARNING, Style.YELLOW)
            print(f"{icon} {unit_name} completed with unstructured findings (confidence {confidence:.2f})")
        else:
            icon = cls._style(StatusIcon.SUCCESS, Style.GREEN)
            print(f"{icon} {unit_name} completed (confidence {confidence:.2f})")

    @classmethod
    def unit_failed(cls, unit_name: str, reason: str) -> None:
        icon = cls._style(StatusIcon.FAILURE, Style.RED)
        print(f"{icon} {unit_name}: {cls._style(reason, Style.DIM)}")

    @classmethod
    def batch_start(cls, unit_count: int, mode: str, max_concurrent: int) -> None:
        if cls._quiet:
            return
        line = cls._style("─" * 50, Style.DIM)
        print(f"\n{line}")
        print(f"  {StatusIcon.RUNNING} Running {unit_count} research units ({mode}, max {max_concurrent})")
        print(line)

    @classmethod
    def batch_complete(cls, completed: int, failed: int) -> None:
        if cls._quiet:
            return
        line = cls._style("─" * 50, Style.DIM)
        icon = cls._style(StatusIcon.SUCCESS, Style.GREEN, Style.BOLD)
        print(f"\n{line}")
        print(f"  {icon} Batch finished: {completed} completed, {failed} failed")
        print(line)

    # === Conversation ===

    @classmethod
    def responder_message(cls, message: str, name: str = "ASSISTANT") -> None:
        """Display a responder turn to the user."""
        label = cls._style(f"[{name.upper()}]:", Style.BOLD, Style.CYAN)
        print(f"\n{label} {message}")

    @classmethod
    def user_prompt(cls, prompt: str = "YOU") -> str:
        return input(cls._style(f"[{prompt}]: ", Style.BOLD, Style.WHITE))

    # === Progress ===

    @classmethod
    def progress(cls, current: int, total: int, label: str = "") -> None:
        """Show progress indicator."""
        if cls._quiet:
            return
        pct = int((current / total) * 100) if total > 0 else 0
        bar_width = 30
        filled = int(bar_width * current / total) if total > 0 else 0
        bar = "█" * filled + "░" * (bar_width - filled)

        progress_text = cls._style(f"[{bar}] {pct}%", Style.CYAN)
        print(f"\r  {progress_text} {label}".rstrip(), end="", flush=True)
        if current >= total:
            print()

    # === Headers ===

    @classmethod
    def header(cls, text: str, width: int = 60) -> None:
        line = cls._style("=" * width, Style.DIM)
        print(f"\n{line}")
        print(cls._style(text.center(width), Style.BOLD))
        print(line)

console = Console()

from .timing import (
    TimingCollector,
    TimingRecord,
    timing,
    enable_timing,
    print_timing_summary,
)

__all__ = [
    "Style",
    "StatusIcon",
    "Console",
    "console",
    "TimingCollector",
    "TimingRecord",
    "timing",
    "enable_timing",
    "print_timing_summary",
]
