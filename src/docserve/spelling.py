"""Spelling validation of rendered documents.

Pure business logic apart from dictionary loading: text is pulled out of the
main content area, normalised, split into words and every distinct word is
checked against the ordered dictionaries of the document's language.
"""

from __future__ import annotations

import re
from collections import Counter
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from spylls.hunspell import Dictionary as HunspellEngine

from docserve.markup import NAV_CONTENT, parse

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from docserve.config import Settings
    from docserve.protocols import Dictionary

log = structlog.get_logger()

# Subtrees that hold code or UI text rather than prose.
_EXCLUDED = (
    NAV_CONTENT,
    "pre.pygments",
    "div.listingblock",
    "div.dropdown__language",
    "code",
    "script",
)

# Abbreviations come first so their periods go with them.
_ABBREVIATIONS = ("bspw.", "bzw.", "z.B.", "ggf.", "bzgl.", "usw.")
_SEPARATORS = (
    "—", "–", "-", "=", '"', "'", "/", "„", "“", "’", "‘",
    ".", ";", "!", "?", ",", ":", "(", ")", "…", "&", "#",
    "\u00a0", "\u202f", "\u2009", "\u200b",  # no-break, narrow, thin, zero-width
)
_NORMALIZE_RE = re.compile("|".join(re.escape(token) for token in (*_ABBREVIATIONS, *_SEPARATORS)))

# "sehr einfach" and "very easy" are counted as a phrase as well.
_INTENSIFIERS = frozenset({"sehr", "ganz", "very"})
_SIMPLE_WORDS = frozenset({"einfach", "easy"})


def normalize(text: str) -> str:
    """Replace punctuation, typographic characters and abbreviations with spaces."""
    return _NORMALIZE_RE.sub(" ", text)


def tokenize(text: str) -> list[str]:
    return normalize(text).split()


def extract_words(html: str) -> list[str]:
    """Return every word of the main content in document order, duplicates kept."""
    soup = parse(html, without=_EXCLUDED)
    words: list[str] = []
    for main in soup.select("body main"):
        for text in main.find_all(string=True):
            words.extend(tokenize(str(text)))
    return words


def check_spelling(
    words: Iterable[str],
    language: str,
    dictionaries: Mapping[str, Sequence[Dictionary]],
    ignored: Iterable[str] = (),
) -> list[str]:
    """Return the sorted distinct words no dictionary of *language* knows.

    A word passes if it is on the document's ignore list or any dictionary
    accepts it as written or lower-cased.
    """
    known_ignored = set(ignored)
    language_dictionaries = dictionaries.get(language, ())
    misspelled: list[str] = []
    for word in sorted(set(words)):
        if word in known_ignored:
            continue
        lowered = word.lower()
        if any(d.is_known(word) or d.is_known(lowered) for d in language_dictionaries):
            continue
        misspelled.append(word)
    return misspelled


def count_words(words: Sequence[str]) -> Counter[str]:
    """Word frequencies, plus "intensifier simple-word" phrases counted as one entry."""
    counts: Counter[str] = Counter(words)
    for previous, word in zip(words, words[1:]):
        if previous in _INTENSIFIERS and word in _SIMPLE_WORDS:
            counts[f"{previous} {word}"] += 1
    return counts


class WordListDictionary:
    """Dictionary backed by the word list of a hunspell ``.dic`` file.

    The leading word-count line is skipped and affix flags (``word/FLAGS``) are
    stripped. Affix rules are not expanded, so inflected forms must be listed;
    used for plain word lists that come without an ``.aff`` file.
    """

    def __init__(self, words: Iterable[str], name: str = "") -> None:
        self.name = name
        self._words = frozenset(words)

    def __len__(self) -> int:
        return len(self._words)

    def is_known(self, word: str) -> bool:
        return word in self._words

    @classmethod
    def from_file(cls, path: Path) -> WordListDictionary:
        raw = path.read_bytes()
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            # Distribution German dictionaries still ship as Latin-9.
            text = raw.decode("iso-8859-15")

        words: list[str] = []
        for lineno, line in enumerate(text.splitlines()):
            entry = line.strip()
            if not entry or (lineno == 0 and entry.isdigit()):
                continue
            words.append(entry.split("/", 1)[0])
        return cls(words, name=str(path))


class HunspellDictionary:
    """Dictionary backed by a hunspell ``.dic``/``.aff`` pair.

    Affix rules are applied, so ``agent/MS`` also accepts "agents".
    """

    def __init__(self, engine: HunspellEngine, name: str = "") -> None:
        self.name = name
        self._engine = engine

    def is_known(self, word: str) -> bool:
        return self._engine.lookup(word)

    @classmethod
    def from_files(cls, path: Path) -> HunspellDictionary:
        """Load ``<path>.dic`` and ``<path>.aff``; *path* may carry either suffix."""
        base = path.with_suffix("")
        return cls(HunspellEngine.from_files(str(base)), name=str(path))


def open_dictionary(path: Path) -> Dictionary:
    """Hunspell engine when the affix file is present, plain word list otherwise."""
    if path.with_suffix(".aff").is_file():
        return HunspellDictionary.from_files(path)
    return WordListDictionary.from_file(path)


def load_dictionaries(settings: Settings) -> dict[str, list[Dictionary]]:
    """Load the configured dictionaries for every language.

    Missing or unreadable files are logged and skipped; with spelling disabled
    every language gets an empty list.
    """
    dictionaries: dict[str, list[Dictionary]] = {lang: [] for lang in settings.languages}
    if not settings.checks.spelling:
        return dictionaries

    for language, paths in settings.spelling.dictionaries.items():
        for raw_path in paths:
            path = Path(raw_path).expanduser()
            try:
                dictionary = open_dictionary(path)
            except OSError:
                log.warning("dictionary_unavailable", language=language, path=str(path))
                continue
            log.info(
                "dictionary_loaded",
                language=language,
                path=str(path),
                engine=type(dictionary).__name__,
            )
            dictionaries.setdefault(language, []).append(dictionary)
    return dictionaries
