"""Small helpers shared across the package."""

from __future__ import annotations

import os
from pathlib import Path

_ABBREVIATIONS = {
    "Meters": "m",
    "Feet": "ft",
    "Inches": "in",
    "Radians": "rad",
    "Degrees": "deg",
    "Rotations": "rot",
}


def get_abbreviation(unit: str) -> str:
    """Return the short symbol for a unit name such as ``"Meters"``."""
    try:
        return _ABBREVIATIONS[unit]
    except KeyError:
        raise ValueError("Invalid Unit") from None


def save_file(contents: str, path: str | os.PathLike[str]) -> None:
    """Write ``contents`` to ``path``, creating missing parent directories."""
    target = Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(contents, encoding="utf-8")
    except OSError as exc:
        raise OSError(f"Cannot write to file: {exc}") from exc