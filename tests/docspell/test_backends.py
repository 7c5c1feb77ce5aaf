"""
Tests for the Checker Backends
==============================
Dictionary word handling, SymSpell and Hunspell lookups, and the
LanguageTool backend on a stub client.
"""

import os
from types import SimpleNamespace
from typing import List

import pytest

from docspell.base import Capability, Severity
from docspell.config import CheckerConfig
from docspell.config_logging import BackendUnavailable
from docspell.languagetool.checker import LanguageToolBackend
from docspell.languagetool.client import GrammarMatch, LanguageToolClient
from docspell.spelling.checker import DictionaryBackend
from docspell.tokenizer import Token, Sentence


def token(word: str, start: int = 0) -> Token:
    return Token(word, start, start + len(word), 0)


class WordListBackend(DictionaryBackend):
    """Dictionary backend on a fixed word list."""

    BACKEND_NAME = "symspell"

    def __init__(self, words, config=None):
        super().__init__(config)
        self.words = {w.lower() for w in words}

    def _initialize(self):
        pass

    def _is_known(self, word: str) -> bool:
        return word.lower() in self.words

    def _suggest(self, word: str):
        return [("word", 0.95), ("w", 0.9), (word, 0.8), ("ward", 0.85)]


@pytest.fixture
def backend():
    checker = WordListBackend(["know", "how", "well", "known", "parser", "word"])
    checker.initialize()
    return checker


class TestDictionaryBackend:
    """Tests for the shared word handling."""

    def test_known_word(self, backend):
        assert backend.check_word(token("known")) is None

    def test_unknown_word(self, backend):
        finding = backend.check_word(token("wrod", 10))
        assert (finding.start, finding.end) == (10, 14)
        assert finding.message == 'Possible misspelling: "wrod"'
        assert finding.rule_id == "SPELL001"
        assert finding.backend == "symspell"
        assert finding.severity is Severity.MEDIUM

    def test_suggestions_filtered(self, backend):
        """Single letters and the word itself are never suggested."""
        finding = backend.check_word(token("wrod"))
        assert [s.text for s in finding.suggestions] == ["word", "ward"]

    def test_skip_words_and_patterns(self, backend):
        for word in ("rustc", "HTTP", "APIs", "snake_case", "camelCase", "v2", "x86"):
            assert backend.check_word(token(word)) is None

    def test_ignore_words(self):
        checker = WordListBackend([], CheckerConfig(ignore_words=["Tokio"]))
        assert checker.check_word(token("tokio")) is None

    def test_contractions_and_possessives(self, backend):
        assert backend.check_word(token("doesn't")) is None
        assert backend.check_word(token("parser's")) is None
        assert backend.check_word(token("parser’s")) is None

    def test_dashed_word_reports_unknown_part(self, backend):
        finding = backend.check_word(token("well-knwon", 4))
        assert (finding.start, finding.end) == (9, 14)

    def test_dashed_word_known_parts(self, backend):
        assert backend.check_word(token("know-how")) is None

    def test_dashes_disabled(self):
        config = CheckerConfig()
        config.quirks.allow_dashes = False
        checker = WordListBackend(["know", "how"], config)
        finding = checker.check_word(token("know-how"))
        assert (finding.start, finding.end) == (0, 8)

    def test_transform_with_group(self, backend):
        finding = backend.check_word(token("'wrod'", 2))
        assert (finding.start, finding.end) == (3, 7)
        assert backend.check_word(token("'word'")) is None

    def test_transform_without_group_accepts(self, backend):
        assert backend.check_word(token("2.5x")) is None

    def test_lookup_methods_are_abstract(self):
        class NoLookup(DictionaryBackend):
            def _initialize(self):
                pass

        with pytest.raises(TypeError):
            NoLookup()

    def test_capabilities(self, backend):
        assert backend.supports(Capability.WORD)
        assert not backend.supports(Capability.SENTENCE)
        with pytest.raises(NotImplementedError):
            backend.check_sentence(Sentence(0, 4, "word"))


class TestSymSpellBackend:
    """Tests for SymSpellBackend on an in-memory vocabulary."""

    @pytest.fixture
    def symspell(self):
        try:
            from docspell.spelling.checker import SymSpellBackend
            import symspellpy  # noqa: F401
        except ImportError:
            pytest.skip("symspellpy not installed")
        config = CheckerConfig()
        config.symspell.load_default_dictionary = False
        checker = SymSpellBackend(config, vocabulary=["function", "receives", "message"])
        checker.initialize()
        return checker

    def test_suggestion_and_confidence(self, symspell):
        finding = symspell.check_word(token("recieves"))
        assert finding.suggestions[0].text == "receives"
        assert finding.suggestions[0].confidence == pytest.approx(0.95)

    def test_casing_transferred(self, symspell):
        finding = symspell.check_word(token("Fuction"))
        assert finding.suggestions[0].text == "Function"

    def test_known_word(self, symspell):
        assert symspell.check_word(token("Message")) is None

    def test_status(self, symspell):
        status = symspell.get_status()
        assert status['available']
        assert status['dictionary']['custom_words_count'] == 3

    def test_custom_dictionary_file(self, tmp_path):
        try:
            from docspell.spelling.symspell import SymSpellDictionary
            import symspellpy  # noqa: F401
        except ImportError:
            pytest.skip("symspellpy not installed")
        path = tmp_path / "words.txt"
        path.write_text("# project words\nserde 500\ntokio\n", encoding='utf-8')
        config = CheckerConfig().symspell
        config.load_default_dictionary = False
        config.custom_dictionary = str(path)
        dictionary = SymSpellDictionary(config)
        dictionary.load()
        assert dictionary.is_known("Serde")
        assert dictionary.is_known("tokio")
        assert not dictionary.is_known("async")

    def test_missing_custom_dictionary(self, tmp_path):
        try:
            from docspell.spelling.checker import SymSpellBackend
            import symspellpy  # noqa: F401
        except ImportError:
            pytest.skip("symspellpy not installed")
        config = CheckerConfig()
        config.symspell.load_default_dictionary = False
        config.symspell.custom_dictionary = str(tmp_path / "missing.txt")
        checker = SymSpellBackend(config, vocabulary=["word"])
        with pytest.raises(BackendUnavailable):
            checker.initialize()
        assert not checker.is_available


class TestHunspellBackend:
    """Tests for HunspellBackend; needs pyenchant with an en_US dictionary."""

    @pytest.fixture
    def hunspell(self):
        try:
            import enchant
            from docspell.spelling.checker import HunspellBackend
        except ImportError:
            pytest.skip("pyenchant not installed")
        if not enchant.dict_exists("en_US"):
            pytest.skip("no en_US dictionary")
        checker = HunspellBackend(CheckerConfig())
        checker.initialize()
        return checker

    def test_misspelling(self, hunspell):
        finding = hunspell.check_word(token("recieve"))
        assert finding is not None
        assert "receive" in [s.text for s in finding.suggestions]
        assert all(0.0 < s.confidence <= 0.95 for s in finding.suggestions)

    def test_correct_word(self, hunspell):
        assert hunspell.check_word(token("receive")) is None

    def test_extra_dictionary(self, tmp_path):
        try:
            from docspell.spelling.enchant import read_dic_words
        except ImportError:
            pytest.skip("spelling module not available")
        path = tmp_path / "project.dic"
        path.write_text("2\nserde/M\ntokio\n", encoding='utf-8')
        assert read_dic_words(path) == {"serde", "tokio"}

    def test_unknown_language(self):
        try:
            from docspell.spelling.checker import HunspellBackend
        except ImportError:
            pytest.skip("spelling module not available")
        config = CheckerConfig()
        config.hunspell.language = "zz_ZZ"
        with pytest.raises(BackendUnavailable):
            HunspellBackend(config).initialize()


class TestDictionarySearchDirs:
    """Tests for hunspell.search_dirs."""

    @staticmethod
    def write_pair(directory, language, aff=True):
        directory.mkdir(parents=True, exist_ok=True)
        (directory / f"{language}.dic").write_text("1\nserde\n", encoding='utf-8')
        if aff:
            (directory / f"{language}.aff").write_text("SET UTF-8\n", encoding='utf-8')

    def test_first_directory_with_both_files(self, tmp_path):
        from docspell.spelling.enchant import find_dictionary_dir
        self.write_pair(tmp_path / "partial", "en_US", aff=False)
        self.write_pair(tmp_path / "full", "en_US")
        self.write_pair(tmp_path / "later", "en_US")
        dirs = [tmp_path / "missing", tmp_path / "partial", tmp_path / "full", tmp_path / "later"]
        assert find_dictionary_dir("en_US", dirs) == tmp_path / "full"

    def test_no_directory_with_both_files(self, tmp_path):
        from docspell.spelling.enchant import find_dictionary_dir
        self.write_pair(tmp_path / "partial", "en_US", aff=False)
        assert find_dictionary_dir("en_US", [tmp_path / "partial"]) is None

    def test_load_fails_without_dictionary(self, tmp_path):
        from docspell.spelling.enchant import EnchantDictionary
        config = CheckerConfig().hunspell
        config.language = "zz_ZZ"
        config.search_dirs = [str(tmp_path)]
        dictionary = EnchantDictionary(config)
        with pytest.raises(BackendUnavailable) as excinfo:
            dictionary.load()
        assert "zz_ZZ.dic/zz_ZZ.aff" in excinfo.value.message
        assert excinfo.value.backend == 'hunspell'
        assert not dictionary.is_loaded

    def test_directory_put_first_on_dicpath(self, tmp_path, monkeypatch):
        from docspell.spelling.enchant import EnchantDictionary
        monkeypatch.setenv("DICPATH", os.pathsep.join(["/usr/share/hunspell", str(tmp_path)]))
        EnchantDictionary._add_search_dir(tmp_path)
        assert os.environ["DICPATH"].split(os.pathsep) == [str(tmp_path), "/usr/share/hunspell"]

    def test_dicpath_set_when_unset(self, tmp_path, monkeypatch):
        from docspell.spelling.enchant import EnchantDictionary
        monkeypatch.delenv("DICPATH", raising=False)
        EnchantDictionary._add_search_dir(tmp_path)
        assert os.environ["DICPATH"] == str(tmp_path)

    def test_search_dir_dictionary_used(self, tmp_path, monkeypatch):
        """A dictionary only present in a search directory loads."""
        try:
            import enchant  # noqa: F401
        except ImportError:
            pytest.skip("pyenchant not installed")
        monkeypatch.delenv("DICPATH", raising=False)
        self.write_pair(tmp_path, "xx_DOC")
        from docspell.spelling.enchant import EnchantDictionary
        config = CheckerConfig().hunspell
        config.language = "xx_DOC"
        config.search_dirs = [str(tmp_path)]
        dictionary = EnchantDictionary(config)
        try:
            dictionary.load()
        except BackendUnavailable:
            pytest.skip("enchant has no hunspell provider")
        assert dictionary.is_known("serde")


class StubClient:
    """Stands in for LanguageToolClient with canned matches."""

    def __init__(self, matches: List[GrammarMatch] = (), fail: bool = False):
        self.matches = list(matches)
        self.fail = fail
        self.started = False
        self.texts = []

    def start(self):
        self.started = True

    def check(self, text: str) -> List[GrammarMatch]:
        if self.fail:
            raise BackendUnavailable("server gone", backend="languagetool")
        self.texts.append(text)
        return self.matches

    def get_status(self):
        return {'available': self.started}


def grammar_match(offset, length, category='GRAMMAR', replacements=("a", "b")):
    return GrammarMatch(message="Agreement error", offset=offset, length=length,
                        replacements=list(replacements), rule_id="AGREEMENT",
                        category=category, severity='High')


class TestLanguageToolBackend:
    """Tests for LanguageToolBackend on a stub client."""

    def test_offsets_in_unit_text(self):
        client = StubClient([grammar_match(5, 3)])
        checker = LanguageToolBackend(CheckerConfig(), client=client)
        checker.initialize()
        findings = checker.check_sentence(Sentence(20, 40, "They was here today."))
        assert client.started
        assert (findings[0].start, findings[0].end) == (25, 28)
        assert findings[0].severity is Severity.HIGH
        assert findings[0].category == "Grammar/GRAMMAR"
        assert [s.confidence for s in findings[0].suggestions] == pytest.approx([0.9, 0.85])

    def test_blanked_ranges_ignored(self):
        client = StubClient([grammar_match(4, 3)])
        checker = LanguageToolBackend(CheckerConfig(), client=client)
        checker.initialize()
        assert checker.check_sentence(Sentence(0, 13, "Use     here.")) == []

    def test_excluded_category(self):
        client = StubClient([grammar_match(0, 4, category='TYPOGRAPHY')])
        checker = LanguageToolBackend(CheckerConfig(), client=client)
        checker.initialize()
        assert checker.check_sentence(Sentence(0, 10, "They was.")) == []

    def test_unavailable_propagates(self):
        checker = LanguageToolBackend(CheckerConfig(), client=StubClient(fail=True))
        checker.initialize()
        with pytest.raises(BackendUnavailable):
            checker.check_sentence(Sentence(0, 5, "Text."))


class TestLanguageToolClient:
    """Tests for match conversion in LanguageToolClient."""

    @pytest.fixture
    def client(self):
        client = LanguageToolClient(CheckerConfig().languagetool)
        raw = [
            SimpleNamespace(ruleId='WHITESPACE_RULE', message='Spaces', offset=0,
                            errorLength=2, replacements=[' '], category='TYPOGRAPHY'),
            SimpleNamespace(ruleId='AGREEMENT', message='Agreement', offset=5,
                            errorLength=3, replacements=list('abcdefg'), category='GRAMMAR'),
            SimpleNamespace(ruleId='ODD', message='Odd', offset=0, errorLength=1,
                            replacements=None, category=None),
        ]
        client._tool = SimpleNamespace(check=lambda text: raw, close=lambda: None)
        client._lt_module = SimpleNamespace(utils=SimpleNamespace(LanguageToolError=RuntimeError))
        return client

    def test_rules_filtered_and_mapped(self, client):
        matches = client.check("They was here.")
        assert [m.rule_id for m in matches] == ['AGREEMENT', 'ODD']
        assert matches[0].severity == 'High'
        assert matches[0].replacements == list('abcde')
        assert (matches[1].category, matches[1].severity) == ('MISC', 'Low')

    def test_blank_text_not_sent(self, client):
        assert client.check("   ") == []

    def test_mode(self):
        config = CheckerConfig().languagetool
        assert LanguageToolClient(config).mode == 'local'
        config.remote_server = "http://localhost:8081"
        assert LanguageToolClient(config).mode == 'remote'
        config.public_api = True
        assert LanguageToolClient(config).mode == 'public_api'

    def test_close(self, client):
        client.close()
        assert not client.is_available
