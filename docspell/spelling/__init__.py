"""
Spelling Backends for DocSpell
==============================
Dictionary spell checking of documentation words.

Features:
- SymSpell: 82K word frequency dictionary, ultra-fast
- PyEnchant: Hunspell dictionaries for other languages and domains
- Shared skip lists, ignore words and quirks

Requires: pip install symspellpy pyenchant
"""

import threading

__version__ = "1.0.0"

# Lazy imports
_dictionaries = {}
_dictionaries_lock = threading.Lock()


def get_symspell_dictionary(config=None):
    """Get a loaded SymSpellDictionary shared by equal configurations."""
    from .symspell import SymSpellDictionary
    from ..config import SymSpellConfig
    config = config or SymSpellConfig()
    key = ('symspell', config.max_edit_distance, config.prefix_length,
           config.custom_dictionary, config.load_default_dictionary)
    with _dictionaries_lock:
        dictionary = _dictionaries.get(key)
        if dictionary is None:
            dictionary = SymSpellDictionary(config)
            dictionary.load()
            _dictionaries[key] = dictionary
    return dictionary


def is_available() -> bool:
    """Check if the default spelling backend can be used."""
    try:
        import symspellpy  # noqa: F401
        return True
    except ImportError:
        return False


def get_status() -> dict:
    """Get spelling integration status."""
    status = {
        'available': is_available(),
        'symspell': {'available': is_available()},
        'enchant': {'available': False},
    }
    try:
        import enchant
        status['enchant'] = {'available': True, 'languages': enchant.list_languages()}
    except ImportError as e:
        status['enchant']['error'] = str(e)
    return status


def get_checker(name: str = "symspell"):
    """Get the backend class for a dictionary backend name."""
    from .checker import SymSpellBackend, HunspellBackend
    return {'symspell': SymSpellBackend, 'hunspell': HunspellBackend}[name]
