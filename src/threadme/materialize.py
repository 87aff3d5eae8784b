"""Placeholder substitution for command templates."""

from __future__ import annotations

INDEX_PLACEHOLDER = "{{N}}"
LINE_PLACEHOLDER = "{{LINE}}"


def materialize(template: str, index: int, line: str | None) -> str:
    """Render a concrete command for one job.

    ``{{N}}`` becomes the decimal job index and ``{{LINE}}`` the source line.
    Without a line (forever mode) ``{{LINE}}`` stays in the command as is.
    Values are inserted verbatim; quoting is up to the template.
    """

    rendered = template.replace(INDEX_PLACEHOLDER, str(index))
    if line is not None:
        rendered = rendered.replace(LINE_PLACEHOLDER, line)
    return rendered
