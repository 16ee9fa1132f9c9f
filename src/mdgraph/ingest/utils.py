from __future__ import annotations

import os
from pathlib import Path


_EMPTY_HASH = "0"
_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(_DIGITS[rem])
    return "".join(reversed(out))


def cheap_hash(source: str) -> str:
    """Cheap 32-bit checksum of a string, rendered in base 36.

    Not cryptographic; used to tag documents and references so that changed
    content can be spotted without comparing bodies.
    """
    if not source:
        return _EMPTY_HASH
    h = 0
    for ch in source:
        h = _to_int32((h << 5) - h + ord(ch))
    return _base36(abs(h))


def relpath(path: str | Path, root: str | Path) -> str:
    # POSIX separators so ids and references look the same on every platform.
    return Path(os.path.relpath(Path(path), Path(root))).as_posix()
