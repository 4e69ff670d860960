"""Centralized Rich Console management for client-side output."""

from rich.console import Console

_console: Console | None = None
_error_console: Console | None = None


def get_console() -> Console:
    """Get or create the global stdout Console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def get_error_console() -> Console:
    """Get or create the global stderr Console instance."""
    global _error_console
    if _error_console is None:
        _error_console = Console(stderr=True)
    return _error_console


def safe_print(message: str, style: str | None = None) -> None:
    """Print using Rich Console with optional styling.

    Args:
        message: The message to print
        style: Optional Rich style string (e.g., "bold red", "green")
    """
    console = get_console()
    if style:
        console.print(message, style=style, highlight=False, markup=False)
    else:
        console.print(message, highlight=False, markup=False)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    get_error_console().print(f"Error: {message}", style="red", highlight=False, markup=False)
