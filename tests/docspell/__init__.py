"""
DocSpell Tests Package
======================
Test suite for the documentation spell checking pipeline.

Run all tests: python3 -m pytest tests/docspell/ -v
Run specific: python3 -m pytest tests/docspell/test_patcher.py -v
"""

__version__ = "1.0.0"
