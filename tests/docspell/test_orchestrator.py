"""
Tests for the Checker Orchestrator
==================================
Backend fan-out, capability routing and disabling of failing backends,
using in-memory backends.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

import pytest

from docspell.base import CheckerBackend, Capability, Finding
from docspell.comments import aggregate
from docspell.config import CheckerConfig
from docspell.config_logging import BackendUnavailable, NoBackendsAvailable
from docspell.extractor import extract_literals
from docspell.orchestrator import Orchestrator, create_backend
from docspell.segmenter import segment
from docspell.span import SourceBuffer
from docspell.tokenizer import Token, Sentence, tokenize


class FakeWordBackend(CheckerBackend):
    """Flags every word in ``bad_words``."""

    BACKEND_NAME = "symspell"
    CAPABILITIES = Capability.WORD

    def __init__(self, bad_words=(), fail_init=False, fail_after: Optional[int] = None):
        super().__init__()
        self.bad_words = set(bad_words)
        self.fail_init = fail_init
        self.fail_after = fail_after
        self.calls = 0

    def _initialize(self):
        if self.fail_init:
            raise BackendUnavailable("dictionary missing", backend=self.BACKEND_NAME)

    def check_word(self, token: Token) -> Optional[Finding]:
        self.calls += 1
        if self.fail_after is not None and self.calls > self.fail_after:
            raise BackendUnavailable("connection lost", backend=self.BACKEND_NAME)
        if token.word in self.bad_words:
            return self.create_finding(token.start, token.end, f"bad word {token.word}",
                                       suggestions=["good"], confidences=[0.9])
        return None


class FakeHunspell(FakeWordBackend):
    BACKEND_NAME = "hunspell"


class FakeSentenceBackend(CheckerBackend):
    """Flags every sentence; optionally reports out-of-range offsets."""

    BACKEND_NAME = "languagetool"
    CAPABILITIES = Capability.SENTENCE

    def __init__(self, overshoot: bool = False):
        super().__init__()
        self.overshoot = overshoot
        self.sentences: List[Sentence] = []

    def _initialize(self):
        pass

    def check_sentence(self, sentence: Sentence) -> List[Finding]:
        self.sentences.append(sentence)
        end = sentence.end + (1000 if self.overshoot else 0)
        return [self.create_finding(sentence.start, end, "sentence issue")]


def unit_and_stream(source: str):
    buffer = SourceBuffer.from_text("lib.rs", source)
    unit = aggregate(buffer, extract_literals(buffer))[0]
    return unit, tokenize(unit, segment(unit.normalized_text))


CONFIG = CheckerConfig(enabled_backends=["symspell", "hunspell", "languagetool"])


class TestInitialization:
    """Tests for Orchestrator.initialize."""

    def test_all_backends_fail(self):
        orchestrator = Orchestrator([FakeWordBackend(fail_init=True)], CONFIG)
        with pytest.raises(NoBackendsAvailable) as info:
            orchestrator.initialize()
        assert "symspell" in info.value.details['backends']

    def test_failing_backend_disabled(self):
        orchestrator = Orchestrator(
            [FakeWordBackend(fail_init=True), FakeSentenceBackend()], CONFIG)
        orchestrator.initialize()
        assert [b.BACKEND_NAME for b in orchestrator.active_backends] == ["languagetool"]
        assert len(orchestrator.errors) == 1
        assert orchestrator.get_status()['symspell']['disabled']

    def test_priority_follows_config(self):
        orchestrator = Orchestrator(
            [FakeSentenceBackend(), FakeHunspell(), FakeWordBackend()], CONFIG)
        assert orchestrator.priority == ["symspell", "hunspell", "languagetool"]

    def test_unknown_backend_name(self):
        with pytest.raises(ValueError):
            create_backend("aspell", CONFIG)


class TestCheckUnit:
    """Tests for Orchestrator.check_unit."""

    def test_words_and_sentences_routed(self):
        word = FakeWordBackend(bad_words={"fuction"})
        sentence = FakeSentenceBackend()
        orchestrator = Orchestrator([word, sentence], CONFIG)
        orchestrator.initialize()
        unit, stream = unit_and_stream("/// This fuction works. It is `code` here.\nfn f() {}\n")

        findings = orchestrator.check_unit(unit, stream)
        assert [f.backend for f in findings] == ["symspell", "languagetool", "languagetool"]
        assert unit.normalized_text[findings[0].start:findings[0].end] == "fuction"
        assert [s.text.strip() for s in sentence.sentences] == [
            "This fuction works.", "It is " + " " * 6 + " here."]

    def test_code_never_reaches_backends(self):
        word = FakeWordBackend(bad_words={"code"})
        orchestrator = Orchestrator([word], CONFIG)
        orchestrator.initialize()
        unit, stream = unit_and_stream("/// Call `code` now.\nfn f() {}\n")
        assert orchestrator.check_unit(unit, stream) == []

    def test_ignore_words(self):
        orchestrator = Orchestrator([FakeWordBackend(bad_words={"fuction"})], CONFIG)
        orchestrator.initialize()
        unit, stream = unit_and_stream("/// This fuction works.\nfn f() {}\n")
        assert orchestrator.check_unit(unit, stream, ignore_words=["Fuction"]) == []

    def test_backend_selection(self):
        orchestrator = Orchestrator(
            [FakeWordBackend(bad_words={"fuction"}), FakeSentenceBackend()], CONFIG)
        orchestrator.initialize()
        unit, stream = unit_and_stream("/// This fuction works.\nfn f() {}\n")
        findings = orchestrator.check_unit(unit, stream, backends=["languagetool"])
        assert [f.backend for f in findings] == ["languagetool"]

    def test_out_of_bounds_findings_dropped(self):
        orchestrator = Orchestrator([FakeSentenceBackend(overshoot=True)], CONFIG)
        orchestrator.initialize()
        unit, stream = unit_and_stream("/// Short.\nfn f() {}\n")
        assert orchestrator.check_unit(unit, stream) == []


class TestDisabling:
    """A backend failing mid-run is disabled once and skipped afterwards."""

    def test_disabled_for_rest_of_run(self):
        word = FakeWordBackend(bad_words={"bad"}, fail_after=1)
        sentence = FakeSentenceBackend()
        orchestrator = Orchestrator([word, sentence], CONFIG)
        orchestrator.initialize()

        unit, stream = unit_and_stream("/// One bad two bad.\nfn f() {}\n")
        first = orchestrator.check_unit(unit, stream)
        second = orchestrator.check_unit(unit, stream)

        assert len(orchestrator.errors) == 1
        assert orchestrator.errors[0].backend == "symspell"
        assert [f.backend for f in first] == ["languagetool"]
        assert [f.backend for f in second] == ["languagetool"]
        assert word.calls == 2

    def test_disabled_once_across_threads(self):
        orchestrator = Orchestrator([FakeWordBackend(fail_after=0), FakeSentenceBackend()],
                                    CONFIG)
        orchestrator.initialize()
        unit, stream = unit_and_stream("/// Many words in this sentence.\nfn f() {}\n")

        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(lambda _: orchestrator.check_unit(unit, stream),
                                        range(32)))

        assert len(orchestrator.errors) == 1
        assert all(f.backend == "languagetool" for found in results for f in found)
