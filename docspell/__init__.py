"""
DocSpell
========
Spelling and grammar checking for Rust documentation comments.

Extracts doc comments (``///``, ``//!``, ``/** */``, ``/*! */``,
``#[doc = "..."]``) and markdown files with byte-exact provenance, checks
their prose with pluggable backends and writes accepted corrections back:
- SymSpell: fast dictionary spelling (default)
- Hunspell (PyEnchant): dictionary spelling in any installed language
- LanguageTool: grammar checking (3000+ rules)

Uses lazy loading - backend packages only import when accessed.
"""

from .config_logging import __version__

__author__ = "DocSpell"

_MODULES = {
    'spelling': 'docspell.spelling',
    'languagetool': 'docspell.languagetool',
}

_loaded_modules = {}


def __getattr__(name):
    """Lazy load backend packages on first access."""
    if name in _MODULES:
        if name not in _loaded_modules:
            import importlib
            _loaded_modules[name] = importlib.import_module(_MODULES[name])
        return _loaded_modules[name]
    raise AttributeError(f"module 'docspell' has no attribute '{name}'")


def __dir__():
    """List available submodules."""
    return list(_MODULES.keys()) + ['config', 'engine', 'get_status']


def get_status():
    """
    Get status of the backend integrations.

    Returns dict with availability info for each backend package.
    """
    return {
        'version': __version__,
        'modules': {name: __getattr__(name).get_status() for name in _MODULES},
    }
