"""Output formatting utilities for consistent CLI reporting."""

import click
from pathlib import Path


def section_header(text: str) -> str:
    """Format a section header with color."""
    return click.style(f"▶ {text}", fg='cyan', bold=True)


def success(text: str, prefix: str = "✓") -> str:
    return f"{click.style(prefix, fg='green')} {text}"


def warning(text: str, prefix: str = "⚠") -> str:
    return f"{click.style(prefix, fg='yellow')} {text}"


def info(text: str) -> str:
    return f"  {click.style('•', fg='blue')} {text}"


def count_badge(count: int, label: str, color: str = 'cyan') -> str:
    return f"{click.style(str(count), fg=color, bold=True)} {label}"


def file_path(path: Path | str, label: str | None = None) -> str:
    """Format a file path with optional label.

    Args:
        path: File path to format
        label: Optional label to show before path

    Returns:
        Formatted path string
    """
    path_str = str(Path(path).resolve())
    if label:
        return f"  {click.style('•', fg='blue')} {label}: {click.style(path_str, fg='yellow')}"
    return f"  {click.style(path_str, fg='yellow')}"


__all__ = [
    "section_header",
    "success",
    "warning",
    "info",
    "file_path",
    "count_badge",
]
