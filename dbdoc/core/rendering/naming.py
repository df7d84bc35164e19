"""
File naming helpers shared by the artifact renderers.
"""

import re
from typing import Set

_UNSAFE_FILE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def safe_file_stem(raw: str) -> str:
    """Replace characters that are unsafe in a file name; never empty."""
    stem = _UNSAFE_FILE_CHARS.sub("_", str(raw or "").strip()).strip(".")
    return stem or "_"


def unique_file_name(stem: str, suffix: str, used: Set[str]) -> str:
    """
    Return ``stem + suffix``, numbering the stem (``_2``, ``_3``...) until the
    name is not in ``used``. The chosen name is added to ``used``.
    """
    name = f"{stem}{suffix}"
    counter = 2
    while name in used:
        name = f"{stem}_{counter}{suffix}"
        counter += 1
    used.add(name)
    return name
