"""
core.scripture.reference_extractor

Extracts normalized scripture references from free-form sermon or
devotional text (plain or HTML).

    >>> extract_references("<p>Read Jn 3:16 and 1 Cor 13</p>")
    ['John 3:16', '1 Corinthians 13']

The scan is a single pass of one compiled pattern. It is deliberately
loose: any book-like token followed by a number is taken as a reference,
so prose such as "Mark 2 items" yields "Mark 2". `strict=True` drops
references whose chapter does not exist in the book; it does not make the
matcher itself any tighter.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional

from core.scripture.books import (
    BARE_BOOK_TOKENS,
    BOOK_ALIASES,
    ORDINAL_BOOK_TOKENS,
    ORDINALS,
    is_valid_chapter,
    normalize_book_name,
)


# ============================================================================
# MARKUP
# ============================================================================

_TAG_PATTERN = re.compile(r"<[^>]*>")
_ENTITY_PATTERN = re.compile(r"&(nbsp|amp|lt|gt|quot);")
_WHITESPACE_PATTERN = re.compile(r"\s+")

_ENTITIES = {
    "nbsp": " ",
    "amp": "&",
    "lt": "<",
    "gt": ">",
    "quot": '"',
}


def strip_markup(text: str) -> str:
    """
    Remove tag-like markup, decode the common HTML entities and collapse
    whitespace.

    Entities are decoded until none remain (so "&amp;lt;" ends up as "<")
    and only then are tags removed; this ordering keeps the function
    idempotent. Tags are replaced by a space so adjacent words don't merge.
    """
    if not text:
        return ""

    decoded = text
    while True:
        replaced = _ENTITY_PATTERN.sub(lambda m: _ENTITIES[m.group(1)], decoded)
        if replaced == decoded:
            break
        decoded = replaced

    without_tags = _TAG_PATTERN.sub(" ", decoded)
    return _WHITESPACE_PATTERN.sub(" ", without_tags).strip()


# ============================================================================
# REFERENCES
# ============================================================================

@dataclass(frozen=True)
class ScriptureReference:
    """A single normalized reference: Book Chapter[:Verse[-EndVerse]]."""
    book: str
    chapter: int
    verse: Optional[int] = None
    end_verse: Optional[int] = None

    def to_canonical(self) -> str:
        if self.verse is None:
            return f"{self.book} {self.chapter}"
        if self.end_verse is None:
            return f"{self.book} {self.chapter}:{self.verse}"
        return f"{self.book} {self.chapter}:{self.verse}-{self.end_verse}"

    def __str__(self) -> str:
        return self.to_canonical()


def _alternation(tokens: List[str]) -> str:
    # Multi-word aliases ("song of solomon") accept any run of whitespace.
    return "|".join(r"\s+".join(re.escape(part) for part in token.split()) for token in tokens)


REFERENCE_PATTERN = re.compile(
    r"(?<![A-Za-z0-9])"
    r"(?:"
    rf"(?P<ordinal>{'|'.join(ORDINALS)})\s*(?P<ordinal_book>{_alternation(ORDINAL_BOOK_TOKENS)})"
    r"|"
    rf"(?P<book>{_alternation(BARE_BOOK_TOKENS)})"
    r")"
    r"\.?\s*"
    r"(?P<chapter>\d{1,3})(?!\d)"
    r"(?:\s*:\s*(?P<verse>\d{1,3})(?!\d)"
    r"(?:\s*[-–—]\s*(?P<end_verse>\d{1,3})(?!\d))?"
    r")?",
    re.IGNORECASE,
)


def _resolve_book(match: re.Match) -> str:
    """
    Map the captured book token to its canonical name.

    An ordinal in front of an unnumbered book ("3 Romans") is a stray number,
    not part of the name. Unknown tokens fall back to the captured text.
    """
    ordinal = match.group("ordinal")
    if ordinal is None:
        token = match.group("book")
        return normalize_book_name(token) or _collapse(token)

    token = match.group("ordinal_book")
    book = normalize_book_name(token, ordinal=ordinal)
    if book is not None:
        return book

    plain = BOOK_ALIASES.get(_collapse(token).lower())
    if plain is not None:
        return plain
    return f"{ordinal} {_collapse(token)}"


def _collapse(token: str) -> str:
    return re.sub(r"\s+", " ", token.strip())


def find_references(text: str, strict: bool = False) -> List[ScriptureReference]:
    """
    Return the de-duplicated references found in `text`, in order of first
    appearance.

    Duplicates are detected on the lowercased canonical string. With
    `strict=True`, references to chapters the book does not have, or verse
    ranges that run backwards, are dropped.
    """
    plain = strip_markup(text)
    seen = set()
    references: List[ScriptureReference] = []

    for match in REFERENCE_PATTERN.finditer(plain):
        verse = match.group("verse")
        end_verse = match.group("end_verse")
        ref = ScriptureReference(
            book=_resolve_book(match),
            chapter=int(match.group("chapter")),
            verse=int(verse) if verse else None,
            end_verse=int(end_verse) if end_verse else None,
        )

        if strict and not _is_plausible(ref):
            continue

        key = ref.to_canonical().lower()
        if key in seen:
            continue
        seen.add(key)
        references.append(ref)

    return references


def extract_references(text: str, strict: bool = False) -> List[str]:
    """Return canonical reference strings found in `text` (see find_references)."""
    return [ref.to_canonical() for ref in find_references(text, strict=strict)]


def _is_plausible(ref: ScriptureReference) -> bool:
    if not is_valid_chapter(ref.book, ref.chapter):
        return False
    if ref.verse is not None and ref.verse < 1:
        return False
    if ref.end_verse is not None and ref.verse is not None and ref.end_verse < ref.verse:
        return False
    return True
