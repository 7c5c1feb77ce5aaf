"""
Hunspell Dictionary for DocSpell
================================
Hunspell dictionaries through PyEnchant.

Features:
- Any installed Hunspell language
- Extra dictionary search directories
- Additional .dic word lists stacked on the base language
- Personal word list support

Requires: pip install pyenchant
Note: macOS may need: brew install enchant
"""

import os
import threading
from typing import List, Dict, Set, Optional, Any
from pathlib import Path

from ..config import HunspellConfig
from ..config_logging import BackendUnavailable, get_logger

logger = get_logger('enchant')


def read_dic_words(path: Path) -> Set[str]:
    """
    Words of a Hunspell ``.dic`` file (affix flags dropped).

    The first line holds the entry count and is skipped when numeric.
    """
    words = set()
    with open(path, 'r', encoding='utf-8', errors='replace') as f:
        for number, line in enumerate(f):
            line = line.strip()
            if not line or line.startswith('#'):
                continue
            if number == 0 and line.isdigit():
                continue
            words.add(line.split('/', 1)[0].lower())
    return words


def find_dictionary_dir(language: str, search_dirs) -> Optional[Path]:
    """First directory holding both ``{language}.dic`` and ``{language}.aff``."""
    for directory in search_dirs:
        directory = Path(directory).expanduser()
        if (directory / f"{language}.dic").is_file() and (directory / f"{language}.aff").is_file():
            return directory
    return None


class EnchantDictionary:
    """
    Stacks a Hunspell language, extra word lists and a personal word list.
    """

    PROVIDER = "hunspell"

    def __init__(self, config: Optional[HunspellConfig] = None):
        self.config = config or HunspellConfig()
        self._enchant = None
        self._base_dict = None
        self._extra_words: Set[str] = set()
        self._lock = threading.Lock()
        self._error: Optional[str] = None

    def load(self):
        """Open the dictionaries; raises BackendUnavailable on failure."""
        language = self.config.language
        directory = None
        if self.config.search_dirs:
            directory = find_dictionary_dir(language, self.config.search_dirs)
            if directory is None:
                self._error = (f"No {language}.dic/{language}.aff in "
                               f"{', '.join(str(d) for d in self.config.search_dirs)}")
                raise BackendUnavailable(self._error, backend='hunspell', language=language)

        try:
            import enchant
        except ImportError as e:
            self._error = f"pyenchant not installed: {e}"
            raise BackendUnavailable(self._error, backend='hunspell') from e
        self._enchant = enchant

        # Must happen before the broker is created; it reads DICPATH on load
        if directory is not None:
            self._add_search_dir(directory)

        try:
            broker = enchant.Broker()
            broker.set_ordering(self.config.language, self.PROVIDER)
            personal = self.config.personal_dictionary
            if personal:
                self._base_dict = enchant.DictWithPWL(self.config.language, pwl=str(personal),
                                                      broker=broker)
            else:
                self._base_dict = broker.request_dict(self.config.language)
        except enchant.errors.Error as e:
            self._error = f"No Hunspell dictionary for {self.config.language}: {e}"
            raise BackendUnavailable(self._error, backend='hunspell',
                                     language=self.config.language) from e

        for path in self.config.extra_dictionaries:
            try:
                self._extra_words |= read_dic_words(Path(path))
            except OSError as e:
                self._error = f"Failed to load dictionary {path}: {e}"
                raise BackendUnavailable(self._error, backend='hunspell') from e

        logger.debug("Hunspell dictionary loaded", language=self.config.language,
                     extra_words=len(self._extra_words))

    @staticmethod
    def _add_search_dir(directory: Path):
        """Put a dictionary directory first on the Hunspell provider's DICPATH."""
        current = os.environ.get('DICPATH')
        paths = [str(directory)]
        if current:
            paths += [p for p in current.split(os.pathsep) if p and p != str(directory)]
        os.environ['DICPATH'] = os.pathsep.join(paths)
        logger.debug("Hunspell dictionary directory added", path=str(directory))

    @property
    def is_loaded(self) -> bool:
        return self._base_dict is not None

    def get_status(self) -> Dict[str, Any]:
        """Get detailed status of the PyEnchant dictionary."""
        status = {
            'available': self.is_loaded,
            'error': self._error,
            'language': self.config.language,
            'extra_words_count': len(self._extra_words),
        }
        if self._enchant is not None:
            status['available_languages'] = self._enchant.list_languages()
        return status

    def is_known(self, word: str) -> bool:
        """
        Check if a word is spelled correctly.

        Args:
            word: Word to check

        Returns:
            True if word is in any dictionary
        """
        if word.lower() in self._extra_words:
            return True
        with self._lock:
            return self._base_dict.check(word)

    def suggest(self, word: str) -> List[str]:
        """
        Get spelling suggestions for a word.

        Args:
            word: Misspelled word

        Returns:
            Suggestions in the provider's order
        """
        with self._lock:
            return self._base_dict.suggest(word)

    def add_word(self, word: str):
        """Accept a word for the rest of the run."""
        self._extra_words.add(word.lower())
