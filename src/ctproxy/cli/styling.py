"""CLI output styling utilities.

Provides consistent styling helpers for CLI output:
- Cyan bold for section headers and labels
- Green for success messages (with checkmark) and the active config
- Red for error messages (with cross)
- Dim for neutral/empty state messages
"""

from __future__ import annotations

__all__ = [
    "style_active",
    "style_dim",
    "style_error",
    "style_header",
    "style_label",
    "style_state",
    "style_success",
    "style_warning",
]

import click


def style_header(title: str) -> str:
    """Style a section header with dashes.

    Example:
        >>> click.echo(style_header("ctproxy"))
        --- ctproxy ---
    """
    return click.style(f"--- {title} ---", fg="cyan", bold=True)


def style_label(label: str) -> str:
    """Style a label for list/summary headers (adds a colon).

    Example:
        >>> click.echo(style_label("Configs") + f" {count}")
        Configs: 3
    """
    return click.style(f"{label}:", fg="cyan", bold=True)


def style_success(message: str) -> str:
    """Style a success message with checkmark."""
    return click.style(f"✓ {message}", fg="green")


def style_error(message: str) -> str:
    """Style an error message with cross mark."""
    return click.style(f"✗ {message}", fg="red")


def style_dim(message: str) -> str:
    """Style a neutral/empty state message as dim."""
    return click.style(message, dim=True)


def style_warning(message: str) -> str:
    """Style a warning message with yellow color."""
    return click.style(f"Warning: {message}", fg="yellow", bold=True)


def style_active(line: str) -> str:
    """Mark a config line as the active one.

    Example:
        >>> click.echo(style_active("Home"))
          * Home
    """
    return click.style(f"  * {line}", fg="green", bold=True)


def style_state(running: bool) -> str:
    """Render engine state as a colored word."""
    if running:
        return click.style("running", fg="green", bold=True)
    return click.style("stopped", fg="yellow")
