from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import Iterable, Protocol

from textblob import Word
from textblob.en.taggers import PatternTagger


# Implicit link inference from free text: tag the text, chunk adjective/noun
# runs into noun phrases and turn each phrase into candidate slugs. Candidates
# only become links later if a node with that id exists.

_MD_URI_RE = re.compile(r"(?<=\])\(.*\)")
_CODE_SPAN_RE = re.compile(r"`[^`]+`")
_CLEANUP_RE = re.compile("\\s\u064d")
_APOSTROPHE_RE = re.compile(r"'(?!t|s|ve)")
_PIPES_RE = re.compile(r"\|+")
_SPACE_BEFORE_PUNCT_RE = re.compile(r"\s+(?=[,.])")
_COMMAS_RE = re.compile(r",+")
_FULLSTOPS_RE = re.compile(r"\.+")
_SPACES_RE = re.compile(r"\s+")
_POST_STRIP_RE = re.compile(r",|'s")

_PLAIN_SYMBOLS = set("|;\\/:*")
_NOISE = {"", ",", "s", "ing"}

_PRONOUNS = {
    "i", "me", "my", "mine", "myself",
    "you", "your", "yours", "yourself", "yourselves",
    "he", "him", "his", "himself",
    "she", "her", "hers", "herself",
    "it", "its", "itself",
    "we", "us", "our", "ours", "ourselves",
    "they", "them", "their", "theirs", "themselves",
    "this", "that", "these", "those",
    "who", "whom", "whose", "which", "what",
    "anyone", "everyone", "someone", "nobody", "everybody", "somebody",
    "anything", "everything", "something", "nothing",
}


def _is_symbol(ch: str) -> bool:
    if ch in _PLAIN_SYMBOLS:
        return True
    cat = unicodedata.category(ch)
    return cat in ("Ps", "Pe") or cat.startswith("S")


def _is_dash(ch: str) -> bool:
    return unicodedata.category(ch) == "Pd"


def _is_edge_noise(ch: str) -> bool:
    return _is_symbol(ch) or unicodedata.category(ch) == "Zs"


def pre_strip(text: str) -> str:
    """Remove markup and punctuation noise before tagging."""
    out = text.strip()
    out = _MD_URI_RE.sub("", out)
    out = _CODE_SPAN_RE.sub("", out)
    out = _CLEANUP_RE.sub("", out)
    out = out.replace('"', "")
    out = _APOSTROPHE_RE.sub("", out)
    out = "".join(" " if _is_dash(ch) else ch for ch in out)

    start = 0
    while start < len(out) and _is_edge_noise(out[start]):
        start += 1
    out = out[start:]

    out = _PIPES_RE.sub(". ", out)

    end = len(out)
    while end > 0 and _is_edge_noise(out[end - 1]):
        end -= 1
    if end < len(out):
        out = out[:end] + "."

    out = "".join(", " if _is_symbol(ch) else ch for ch in out)
    out = _SPACE_BEFORE_PUNCT_RE.sub("", out)
    out = _COMMAS_RE.sub(",", out)
    out = _FULLSTOPS_RE.sub(".", out)
    return _SPACES_RE.sub(" ", out)


@dataclass(frozen=True)
class NounPhrase:
    adjectives: tuple[str, ...]
    root: str


class PhraseExtractor(Protocol):
    def extract(self, text: str) -> list[NounPhrase]:
        ...


class TextBlobPhraseExtractor:
    """Noun phrases from TextBlob's pattern tagger.

    The pattern tagger ships its lexicon with TextBlob, so no corpus download
    is needed. A phrase is a run of adjectives followed by nouns; the root is
    the noun run with its head noun singularized.
    """

    def __init__(self) -> None:
        self._tagger = PatternTagger()

    def extract(self, text: str) -> list[NounPhrase]:
        phrases: list[NounPhrase] = []
        adjectives: list[str] = []
        nouns: list[str] = []

        def flush() -> None:
            if nouns:
                head = str(Word(nouns[-1]).singularize())
                root = " ".join(nouns[:-1] + [head])
                phrases.append(NounPhrase(adjectives=tuple(adjectives), root=root))
            adjectives.clear()
            nouns.clear()

        for word, tag in self._tagger.tag(text):
            lower = word.lower()
            if tag.startswith("PRP") or lower in _PRONOUNS:
                flush()
            elif tag.startswith("NN"):
                nouns.append(lower)
            elif tag.startswith("JJ"):
                if nouns:
                    flush()
                adjectives.append(lower)
            else:
                flush()
        flush()
        return phrases


def _strip(text: str) -> str:
    out = _SPACES_RE.sub("-", text.strip())
    return out.replace(".", "").replace("_", "")


def candidates_for(phrase: NounPhrase) -> list[str]:
    root = _POST_STRIP_RE.sub("", _strip(phrase.root))
    out = [root]
    adjectives = [_strip(a) for a in phrase.adjectives]
    out.extend(adjectives)
    out.extend(f"{a}-{root}" for a in adjectives)
    return out


class LinkInferrer:
    def __init__(self, extractor: PhraseExtractor | None = None):
        self.extractor = extractor or TextBlobPhraseExtractor()

    def infer(self, text: str, excludes: Iterable[str] = ()) -> list[str]:
        """Candidate link targets mentioned in ``text``, first occurrence first."""
        blocked = _NOISE | set(excludes)
        seen: set[str] = set()
        out: list[str] = []
        for phrase in self.extractor.extract(pre_strip(text)):
            for name in candidates_for(phrase):
                if len(name) <= 1 or name in blocked or name in seen:
                    continue
                seen.add(name)
                out.append(name)
        return out
