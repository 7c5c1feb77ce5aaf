"""
Dictionary Spelling Backends for DocSpell
=========================================
Word-level checker backends on top of SymSpell and Hunspell.

Features:
- Technical abbreviation and Rust vocabulary handling
- Configurable ignore words and skip patterns
- Word quirks (regex transforms, dash-joined words, contractions)
- Confidence derived from edit distance

Inherits from CheckerBackend for consistent interface.
"""

import re
import difflib
from abc import abstractmethod
from typing import Iterable, List, Tuple, Set, Optional

from ..base import CheckerBackend, Capability, Finding, Severity
from ..config import CheckerConfig
from ..tokenizer import Token, is_identifier
from .symspell import SymSpellDictionary
from .enchant import EnchantDictionary

MAX_SUGGESTIONS = 10


class DictionaryBackend(CheckerBackend):
    """
    Shared word handling for dictionary backends.

    Subclasses provide ``_is_known`` and ``_suggest``.
    """

    CAPABILITIES = Capability.WORD

    # Words to never flag (technical terms, proper nouns, etc.)
    SKIP_WORDS: Set[str] = {
        # Common technical abbreviations
        'api', 'apis', 'sdk', 'sdks', 'gui', 'guis', 'cli', 'url', 'urls',
        'html', 'css', 'json', 'yaml', 'toml', 'xml', 'sql',
        'http', 'https', 'ftp', 'ssh', 'tcp', 'udp', 'ip',
        'cpu', 'gpu', 'ram', 'rom', 'simd', 'ffi', 'abi',
        'utf', 'ascii', 'stdin', 'stdout', 'stderr',
        'todo', 'todos', 'fixme',
        # Rust vocabulary
        'rust', 'rustc', 'rustdoc', 'rustup', 'cargo', 'crate', 'crates',
        'struct', 'structs', 'enum', 'enums', 'impl', 'impls', 'fn',
        'mut', 'async', 'dyn', 'usize', 'isize', 'str', 'vec', 'bool',
        'iter', 'iterator', 'iterators', 'trait', 'traits', 'lifetime',
        'lifetimes', 'refcell', 'rc', 'arc', 'mutex', 'ok', 'err',
        'github', 'gitlab', 'linux', 'macos', 'windows',
    }

    # Patterns to skip (regex)
    SKIP_PATTERNS = [
        r'^[A-Z]{2,}s?$',      # All caps (acronyms)
        r'^[A-Z][a-z]+[A-Z]',  # CamelCase
        r'^[a-z]+[A-Z]',       # camelCase
        r'^\d+[a-zA-Z]+$',     # Numbers followed by letters
        r'^[a-zA-Z]+\d+$',     # Letters followed by numbers
        r'^v\d+',              # Version numbers
    ]

    CONTRACTIONS: Set[str] = {
        "don't", "doesn't", "didn't", "can't", "won't", "isn't", "aren't",
        "wasn't", "weren't", "shouldn't", "wouldn't", "couldn't", "hasn't",
        "haven't", "hadn't", "mustn't", "needn't", "it's", "that's",
        "there's", "here's", "what's", "who's", "let's", "i'm", "you're",
        "we're", "they're", "i've", "you've", "we've", "they've", "i'll",
        "you'll", "we'll", "they'll", "it'll", "i'd", "you'd", "we'd", "they'd",
    }

    def __init__(self, config: Optional[CheckerConfig] = None):
        super().__init__()
        self.config = config or CheckerConfig()
        self.min_word_length = self.config.tokenizer.min_word_length
        self._ignore_words = {w.lower() for w in self.config.ignore_words}
        self._skip_patterns = [re.compile(p) for p in self.SKIP_PATTERNS]
        self._transforms = [re.compile(p) for p in self.config.quirks.transform_regex]

    @abstractmethod
    def _is_known(self, word: str) -> bool:
        """True if the dictionary knows ``word``."""

    @abstractmethod
    def _suggest(self, word: str) -> List[Tuple[str, float]]:
        """(replacement, confidence) pairs, best first."""

    def _should_skip(self, word: str) -> bool:
        """Check if a word should be skipped."""
        if len(word) < self.min_word_length:
            return True
        lower = word.lower()
        if lower in self.SKIP_WORDS or lower in self._ignore_words:
            return True
        if is_identifier(word):
            return True
        for pattern in self._skip_patterns:
            if pattern.match(word):
                return True
        return False

    def _apply_quirks(self, word: str) -> List[Tuple[str, int]]:
        """
        Parts of ``word`` to look up, with their offsets.

        A transform that matches without groups accepts the word; one with
        groups replaces the word by its groups.
        """
        for transform in self._transforms:
            match = transform.match(word)
            if match:
                return [(group, match.start(index))
                        for index, group in enumerate(match.groups(), 1) if group]
        parts = [(word, 0)]
        if self.config.quirks.allow_dashes and '-' in word and not self._is_known(word):
            parts = []
            offset = 0
            for piece in word.split('-'):
                if piece:
                    parts.append((piece, offset))
                offset += len(piece) + 1
        return parts

    def _is_known_word(self, word: str) -> bool:
        if self._is_known(word):
            return True
        if "'" in word:
            lower = word.lower()
            if lower in self.CONTRACTIONS:
                return True
            base, _, suffix = lower.partition("'")
            if suffix == 's' and self._is_known(base):
                return True
        return False

    def check_word(self, token: Token) -> Optional[Finding]:
        """Flag the first unknown part of a word."""
        word = token.word.replace('’', "'")
        if self._should_skip(word):
            return None

        for part, offset in self._apply_quirks(word):
            if self._should_skip(part) or self._is_known_word(part):
                continue
            start = token.start + offset
            suggestions = [(text, confidence) for text, confidence in self._suggest(part)
                           if len(text) > 1 and text != part][:MAX_SUGGESTIONS]
            return self.create_finding(
                start=start,
                end=start + len(part),
                message=f'Possible misspelling: "{part}"',
                suggestions=[text for text, _ in suggestions],
                confidences=[confidence for _, confidence in suggestions],
                severity=Severity.MEDIUM,
                rule_id='SPELL001',
                category='Spelling',
            )
        return None


class SymSpellBackend(DictionaryBackend):
    """Spelling checker on the SymSpell frequency dictionary."""

    BACKEND_NAME = "symspell"

    def __init__(self, config: Optional[CheckerConfig] = None,
                 vocabulary: Optional[Iterable[str]] = None):
        """
        Args:
            config: Resolved configuration
            vocabulary: Extra known words, loaded with the dictionary
        """
        super().__init__(config)
        self.vocabulary = list(vocabulary or [])
        self.dictionary: Optional[SymSpellDictionary] = None

    def _initialize(self):
        if self.vocabulary:
            self.dictionary = SymSpellDictionary(self.config.symspell, self.vocabulary)
            self.dictionary.load()
        else:
            from . import get_symspell_dictionary
            self.dictionary = get_symspell_dictionary(self.config.symspell)

    def _is_known(self, word: str) -> bool:
        return self.dictionary.is_known(word)

    def _suggest(self, word: str) -> List[Tuple[str, float]]:
        return [(s.suggestion, self._calculate_confidence(s.distance, rank))
                for rank, s in enumerate(self.dictionary.suggest(word))]

    def _calculate_confidence(self, distance: int, rank: int) -> float:
        """Higher confidence for small edit distances and frequent words."""
        if distance == 1:
            base = 0.95
        elif distance == 2:
            base = 0.85
        else:
            base = 0.7
        return max(base - 0.01 * rank, 0.0)

    def get_status(self):
        status = super().get_status()
        if self.dictionary is not None:
            status['dictionary'] = self.dictionary.get_status()
        return status


class HunspellBackend(DictionaryBackend):
    """Spelling checker on Hunspell dictionaries."""

    BACKEND_NAME = "hunspell"

    def __init__(self, config: Optional[CheckerConfig] = None):
        super().__init__(config)
        self.dictionary = EnchantDictionary(self.config.hunspell)

    def _initialize(self):
        self.dictionary.load()

    def _is_known(self, word: str) -> bool:
        return self.dictionary.is_known(word)

    def _suggest(self, word: str) -> List[Tuple[str, float]]:
        results = []
        for rank, suggestion in enumerate(self.dictionary.suggest(word)):
            ratio = difflib.SequenceMatcher(None, word.lower(), suggestion.lower()).ratio()
            results.append((suggestion, max(0.5 + 0.45 * ratio - 0.01 * rank, 0.0)))
        return results

    def get_status(self):
        status = super().get_status()
        status['dictionary'] = self.dictionary.get_status()
        return status
