"""
SymSpell Dictionary for DocSpell
================================
Fast dictionary lookups and edit-distance suggestions via symspellpy.

Features:
- Bundled 82K-word English frequency dictionary
- Custom dictionary files (one word per line, optional count)
- In-memory vocabularies for tests and embedding
- Case transfer from the misspelled word to its suggestions

Requires: pip install symspellpy
"""

import threading
from importlib import resources
from typing import Iterable, List, Dict, Optional, Any, Set
from dataclasses import dataclass
from pathlib import Path

from ..config import SymSpellConfig
from ..config_logging import BackendUnavailable, get_logger

logger = get_logger('symspell')


@dataclass
class SpellingSuggestion:
    """A spelling suggestion with metadata."""
    suggestion: str
    distance: int
    frequency: int


class SymSpellDictionary:
    """
    SymSpell-backed word list.

    ``load`` must be called once before lookups; it raises
    BackendUnavailable when symspellpy or a dictionary file is missing.
    """

    # Default dictionary filename (bundled with symspellpy)
    FREQUENCY_DICT = "frequency_dictionary_en_82_765.txt"
    CUSTOM_WORD_COUNT = 1000000

    def __init__(self, config: Optional[SymSpellConfig] = None,
                 vocabulary: Optional[Iterable[str]] = None):
        """
        Args:
            config: SymSpell section of the configuration
            vocabulary: Extra words added with a high frequency
        """
        self.config = config or SymSpellConfig()
        self.vocabulary = list(vocabulary or [])
        self._sym_spell = None
        self._verbosity = None
        self._custom_words: Set[str] = set()
        self._lock = threading.Lock()
        self._error: Optional[str] = None

    def load(self):
        """Create the SymSpell index and load every configured dictionary."""
        try:
            from symspellpy import SymSpell, Verbosity
        except ImportError as e:
            self._error = f"symspellpy not installed: {e}"
            raise BackendUnavailable(self._error, backend='symspell') from e

        self._verbosity = Verbosity
        self._sym_spell = SymSpell(
            max_dictionary_edit_distance=self.config.max_edit_distance,
            prefix_length=self.config.prefix_length
        )

        if self.config.load_default_dictionary:
            dict_file = resources.files("symspellpy") / self.FREQUENCY_DICT
            with resources.as_file(dict_file) as dict_path:
                if not self._sym_spell.load_dictionary(str(dict_path), term_index=0, count_index=1):
                    self._error = f"Failed to load dictionary {dict_path}"
                    raise BackendUnavailable(self._error, backend='symspell')

        if self.config.custom_dictionary:
            self._load_custom_dictionary(Path(self.config.custom_dictionary))

        for word in self.vocabulary:
            self.add_word(word)

        logger.debug("SymSpell dictionary loaded", words=len(self._sym_spell.words),
                     custom_words=len(self._custom_words))

    def _load_custom_dictionary(self, path: Path):
        """Load custom words; lines are ``word`` or ``word count``."""
        try:
            with open(path, 'r', encoding='utf-8') as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith('#'):
                        continue
                    parts = line.split()
                    count = int(parts[1]) if len(parts) > 1 and parts[1].isdigit() else self.CUSTOM_WORD_COUNT
                    self.add_word(parts[0], count)
        except OSError as e:
            self._error = f"Failed to load custom dictionary {path}: {e}"
            raise BackendUnavailable(self._error, backend='symspell') from e

    def add_word(self, word: str, frequency: int = CUSTOM_WORD_COUNT):
        """
        Add a word to the dictionary.

        Args:
            word: Word to add
            frequency: Word frequency (higher = more likely suggestion)
        """
        with self._lock:
            self._custom_words.add(word.lower())
            self._sym_spell.create_dictionary_entry(word.lower(), frequency)

    @property
    def is_loaded(self) -> bool:
        return self._sym_spell is not None

    def get_status(self) -> Dict[str, Any]:
        """Get detailed status of the SymSpell dictionary."""
        status = {
            'available': self.is_loaded,
            'error': self._error,
            'max_edit_distance': self.config.max_edit_distance,
            'custom_words_count': len(self._custom_words),
        }
        if self.is_loaded:
            status['dictionary_size'] = len(self._sym_spell.words)
        return status

    def is_known(self, word: str) -> bool:
        """True if the lowercased word is in the dictionary."""
        lower = word.lower()
        return lower in self._custom_words or lower in self._sym_spell.words

    def suggest(self, word: str) -> List[SpellingSuggestion]:
        """
        Closest dictionary words, best first.

        Args:
            word: Misspelled word

        Returns:
            Suggestions at the smallest edit distance found, casing
            transferred from ``word``
        """
        suggestions = self._sym_spell.lookup(
            word,
            self._verbosity.CLOSEST,
            max_edit_distance=self.config.max_edit_distance,
            transfer_casing=True,
        )
        return [
            SpellingSuggestion(suggestion=s.term, distance=s.distance, frequency=s.count)
            for s in suggestions
            if s.distance > 0
        ]
