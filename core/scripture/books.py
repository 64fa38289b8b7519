"""
core.scripture.books

Static Bible book data used by the reference extractor:

  - CANONICAL_BOOKS: the 66 canonical book names in canonical order
  - BOOK_CHAPTER_COUNTS: canonical book -> number of chapters
  - BOOK_ALIASES: lowercase alias -> canonical book name

Aliases for numbered books are stored with their ordinal ("1 cor",
"1cor", "first corinthians"); the extractor captures the ordinal and the
book token separately and joins them before lookup.
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional


BOOK_CHAPTER_COUNTS: Dict[str, int] = {
    # Old Testament
    "Genesis": 50, "Exodus": 40, "Leviticus": 27, "Numbers": 36,
    "Deuteronomy": 34, "Joshua": 24, "Judges": 21, "Ruth": 4,
    "1 Samuel": 31, "2 Samuel": 24, "1 Kings": 22, "2 Kings": 25,
    "1 Chronicles": 29, "2 Chronicles": 36, "Ezra": 10, "Nehemiah": 13,
    "Esther": 10, "Job": 42, "Psalms": 150, "Proverbs": 31,
    "Ecclesiastes": 12, "Song of Solomon": 8, "Isaiah": 66, "Jeremiah": 52,
    "Lamentations": 5, "Ezekiel": 48, "Daniel": 12, "Hosea": 14,
    "Joel": 3, "Amos": 9, "Obadiah": 1, "Jonah": 4, "Micah": 7,
    "Nahum": 3, "Habakkuk": 3, "Zephaniah": 3, "Haggai": 2,
    "Zechariah": 14, "Malachi": 4,
    # New Testament
    "Matthew": 28, "Mark": 16, "Luke": 24, "John": 21, "Acts": 28,
    "Romans": 16, "1 Corinthians": 16, "2 Corinthians": 13, "Galatians": 6,
    "Ephesians": 6, "Philippians": 4, "Colossians": 4,
    "1 Thessalonians": 5, "2 Thessalonians": 3, "1 Timothy": 6,
    "2 Timothy": 4, "Titus": 3, "Philemon": 1, "Hebrews": 13, "James": 5,
    "1 Peter": 5, "2 Peter": 3, "1 John": 5, "2 John": 1, "3 John": 1,
    "Jude": 1, "Revelation": 22,
}

CANONICAL_BOOKS: List[str] = list(BOOK_CHAPTER_COUNTS)

# Aliases for books without an ordinal.
_PLAIN_ALIASES: Dict[str, List[str]] = {
    "Genesis": ["gen", "ge", "gn"],
    "Exodus": ["exod", "exo", "ex"],
    "Leviticus": ["lev", "le", "lv"],
    "Numbers": ["num", "nu", "nm", "numb"],
    "Deuteronomy": ["deut", "deu", "dt"],
    "Joshua": ["josh", "jos"],
    "Judges": ["judg", "jdg", "jdgs"],
    "Ruth": ["rth", "ru"],
    "Ezra": ["ezr"],
    "Nehemiah": ["neh"],
    "Esther": ["esth", "est"],
    "Job": ["jb"],
    "Psalms": ["psalm", "psa", "pss", "ps"],
    "Proverbs": ["prov", "pro", "prv", "pr"],
    "Ecclesiastes": ["eccles", "eccl", "ecc", "qoheleth"],
    "Song of Solomon": ["song of songs", "song", "sos", "canticles"],
    "Isaiah": ["isa", "isai"],
    "Jeremiah": ["jer", "je", "jr"],
    "Lamentations": ["lam", "lament"],
    "Ezekiel": ["ezek", "eze", "ezk"],
    "Daniel": ["dan", "dn"],
    "Hosea": ["hos"],
    "Joel": ["jl"],
    "Amos": ["amo"],
    "Obadiah": ["obad", "obd"],
    "Jonah": ["jon", "jnh"],
    "Micah": ["mic", "mc"],
    "Nahum": ["nah", "nahm"],
    "Habakkuk": ["hab", "hb"],
    "Zephaniah": ["zeph", "zep", "zp"],
    "Haggai": ["hag", "hg"],
    "Zechariah": ["zech", "zec", "zc"],
    "Malachi": ["mal", "ml"],
    "Matthew": ["matt", "mat", "mt"],
    "Mark": ["mrk", "mk", "mr"],
    "Luke": ["luk", "lk"],
    "John": ["jhn", "jn"],
    "Acts": ["act"],
    "Romans": ["rom", "ro", "rm"],
    "Galatians": ["gal", "ga"],
    "Ephesians": ["eph", "ephes"],
    "Philippians": ["phil", "php", "pp"],
    "Colossians": ["col", "co"],
    "Titus": ["tit", "ti"],
    "Philemon": ["philem", "phlm", "phm"],
    "Hebrews": ["heb"],
    "James": ["jas", "jm"],
    "Jude": ["jud", "jd"],
    "Revelation": ["revelations", "rev", "rv", "apocalypse"],
}

# Aliases for numbered books: base book -> (ordinals, base tokens).
_NUMBERED_ALIASES: Dict[str, List[str]] = {
    "Samuel": ["samuel", "sam", "sa", "sm"],
    "Kings": ["kings", "kgs", "kin", "ki"],
    "Chronicles": ["chronicles", "chron", "chr", "ch"],
    "Corinthians": ["corinthians", "cor", "co"],
    "Thessalonians": ["thessalonians", "thess", "thes", "th"],
    "Timothy": ["timothy", "tim", "ti"],
    "Peter": ["peter", "pet", "pe", "pt"],
    "John": ["john", "jn", "jhn", "jo"],
}

_ORDINAL_WORDS: Dict[str, str] = {
    "1": "1", "first": "1", "1st": "1",
    "2": "2", "second": "2", "2nd": "2",
    "3": "3", "third": "3", "3rd": "3",
}


def _build_aliases() -> Dict[str, str]:
    aliases: Dict[str, str] = {}

    for book in CANONICAL_BOOKS:
        if book[0].isdigit():
            continue
        aliases[book.lower()] = book
        for alias in _PLAIN_ALIASES.get(book, []):
            aliases[alias] = book

    for base, tokens in _NUMBERED_ALIASES.items():
        for ordinal, number in _ORDINAL_WORDS.items():
            book = f"{number} {base}"
            if book not in BOOK_CHAPTER_COUNTS:
                continue
            for token in tokens:
                aliases[f"{ordinal} {token}"] = book
                if ordinal.isdigit():
                    aliases[f"{ordinal}{token}"] = book

    return aliases


BOOK_ALIASES: Dict[str, str] = _build_aliases()

_PLAIN_TOKENS = {
    alias for alias in BOOK_ALIASES
    if alias.split(" ", 1)[0] not in _ORDINAL_WORDS and not alias[0].isdigit()
}
_NUMBERED_TOKENS = {token for tokens in _NUMBERED_ALIASES.values() for token in tokens}

# Book tokens the extractor's pattern recognizes after an ordinal.
# Sorted longest first so alternation prefers "Philippians" over "Phil".
ORDINAL_BOOK_TOKENS: List[str] = sorted(
    _PLAIN_TOKENS | _NUMBERED_TOKENS, key=len, reverse=True
)

# Tokens recognized without an ordinal. Short numbered-book stems ("ch",
# "th", "sa") read as ordinary words on their own and are left out.
BARE_BOOK_TOKENS: List[str] = sorted(
    _PLAIN_TOKENS | {token for token in _NUMBERED_TOKENS if len(token) >= 4},
    key=len,
    reverse=True,
)

ORDINALS: List[str] = sorted(_ORDINAL_WORDS, key=len, reverse=True)


def normalize_book_name(name: str, ordinal: Optional[str] = None) -> Optional[str]:
    """
    Normalize a book token (optionally with an ordinal) to its canonical form.

    Returns None if the token is not a recognized alias.
    """
    token = re.sub(r"\s+", " ", name.strip().lower()).rstrip(".")
    if ordinal:
        token = f"{ordinal.strip().lower()} {token}"
    return BOOK_ALIASES.get(token)


def is_valid_chapter(book: str, chapter: int) -> bool:
    """Return True if `chapter` exists in the canonical `book`."""
    count = BOOK_CHAPTER_COUNTS.get(book)
    if count is None:
        return False
    return 1 <= chapter <= count
