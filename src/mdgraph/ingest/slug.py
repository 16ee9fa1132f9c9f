from __future__ import annotations

import re
import unicodedata


_SEPARATORS_RE = re.compile(r"[ /\\.]")
_NOT_SLUG_RE = re.compile(r"[^a-z0-9-]")


def slug(text: str) -> str:
    """Normalise text into an id-safe link name.

    Spaces, slashes and dots become hyphens, the result is lower-cased and
    decomposed (NFD) so accents fall away, then everything outside
    ``[a-z0-9-]`` is dropped. ``slug(slug(x)) == slug(x)``.
    """
    out = _SEPARATORS_RE.sub("-", text).lower()
    out = unicodedata.normalize("NFD", out)
    return _NOT_SLUG_RE.sub("", out)


class SlugCache:
    """Memoises :func:`slug` for the lifetime of its owner."""

    def __init__(self) -> None:
        self._cache: dict[str, str] = {}

    def __call__(self, text: str) -> str:
        cached = self._cache.get(text)
        if cached is None:
            cached = slug(text)
            self._cache[text] = cached
        return cached

    def __len__(self) -> int:
        return len(self._cache)

    def clear(self) -> None:
        self._cache.clear()
