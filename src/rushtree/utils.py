from __future__ import annotations

import math
import os
from datetime import datetime, timezone
from pathlib import Path

# Binary/decimal prefixes for each 1024 division in to_shorthand().
SIZE_PREFIXES = ("K", "M", "G", "T", "P", "E", "Z", "Y")

_UNSAFE_FILENAME_CHARS = '<>:"/\\|?*'


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_path(s: str) -> Path:
    expanded = os.path.expandvars(os.path.expanduser(s))
    return Path(expanded).resolve()


def index_letter(index: int) -> str:
    """Map 1..26 to A..Z; anything outside that range becomes '_'."""
    if 1 <= index <= 26:
        return chr(ord("A") + index - 1)
    return "_"


def _round_half_up(value: float, decimals: int) -> float:
    scale = 10**decimals
    return math.floor(value * scale + 0.5) / scale


def to_shorthand(size: int) -> str:
    """Render a byte count as "<binary>iB (<decimal>B)", e.g. "1.0MiB (1.0MB)".

    Kilo values have no decimals, larger magnitudes one decimal, and any
    binary value of 100 or more drops back to zero decimals so the number
    never carries more than three significant digits.
    """
    if size == 0:
        return "0B"

    current = float(size)
    power = 0
    while current >= 1024:
        current /= 1024
        power += 1

    if power == 0 or power > len(SIZE_PREFIXES):
        return f"{size}B"

    prefix = SIZE_PREFIXES[power - 1]
    decimals = 0 if power == 1 else 1
    if current >= 100:
        decimals = 0

    binary = _round_half_up(current, decimals)
    decimal = _round_half_up(size / 1000**power, decimals)
    return f"{binary:.{decimals}f}{prefix}iB ({decimal:.{decimals}f}{prefix}B)"


def format_duration(millis: int) -> str:
    if millis < 1000:
        return f"{millis}ms"
    if millis < 60000:
        return f"{millis / 1000:.2f}s"
    seconds = millis // 1000
    return f"{seconds // 60}m {seconds % 60}s"


def sanitize_filename(name: str) -> str:
    return "".join("_" if c in _UNSAFE_FILENAME_CHARS else c for c in name)


def normalize_sep(path: str) -> str:
    return path.replace("\\", "/")
