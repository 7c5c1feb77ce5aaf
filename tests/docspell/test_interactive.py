"""
Tests for Interactive Review
============================
ConsoleReviewer driven by scripted answers.
"""

import dataclasses
import io

import pytest

from docspell.base import Finding, Suggestion
from docspell.comments import aggregate
from docspell.diagnostics import UnitFindings, aggregate_findings
from docspell.engine import FileReport
from docspell.extractor import extract_literals
from docspell.interactive import ConsoleReviewer
from docspell.patcher import DiagnosticReview, ReviewState
from docspell.span import SourceBuffer

SOURCE = "/// This fuction recieves a mesage.\nfn f() {}\n"

CORRECTIONS = {
    "fuction": ["function"],
    "recieves": ["receives"],
    "mesage": ["message", "massage"],
}


class Script:
    """Input function replaying canned answers, then end of input."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.prompts = []

    def __call__(self, prompt):
        self.prompts.append(prompt)
        if not self.answers:
            raise EOFError
        return self.answers.pop(0)


@pytest.fixture
def report():
    buffer = SourceBuffer.from_text("src/lib.rs", SOURCE)
    unit = aggregate(buffer, extract_literals(buffer))[0]
    findings = []
    for phrase, suggestions in CORRECTIONS.items():
        start = unit.normalized_text.index(phrase)
        findings.append(Finding(
            start, start + len(phrase), f'Possible misspelling: "{phrase}"', "symspell",
            [Suggestion(text, 0.95 - 0.01 * rank, "symspell")
             for rank, text in enumerate(suggestions)],
        ))
    diagnostics = aggregate_findings([UnitFindings(unit, findings)], ["symspell"])
    return FileReport("src/lib.rs", buffer, units=1, diagnostics=diagnostics)


def run_review(report, *answers, reviews=None):
    output = io.StringIO()
    reviews = reviews if reviews is not None else [DiagnosticReview(d) for d in report.diagnostics]
    reviewer = ConsoleReviewer(input_func=Script(*answers), output=output)
    keep_going = reviewer.review(report, reviews)
    return keep_going, reviews, output.getvalue()


class TestAnswers:
    """Tests for each answer."""

    def test_accept_all(self, report):
        keep_going, reviews, output = run_review(report, "y", "y", "y")
        assert keep_going
        assert [r.replacement for r in reviews] == ["function", "receives", "message"]
        assert "[1/3] src/lib.rs" in output
        assert "  2) massage" in output

    def test_numbered_suggestion(self, report):
        _, reviews, _ = run_review(report, "n", "s", "2")
        assert reviews[0].state is ReviewState.REJECTED
        assert reviews[1].state is ReviewState.SKIPPED
        assert reviews[1].reason == "skipped by user"
        assert reviews[2].replacement == "massage"

    def test_out_of_range_number(self, report):
        _, reviews, output = run_review(report, "7", "1", "n", "n")
        assert reviews[0].replacement == "function"
        assert "Unknown answer" in output

    def test_entered_replacement(self, report):
        _, reviews, _ = run_review(report, "e", "functions", "n", "n")
        assert reviews[0].state is ReviewState.ACCEPTED
        assert reviews[0].replacement == "functions"

    def test_empty_replacement_asks_again(self, report):
        _, reviews, _ = run_review(report, "e", "", "y", "n", "n")
        assert reviews[0].replacement == "function"

    def test_help(self, report):
        _, _, output = run_review(report, "?", "y", "y", "y")
        assert "accept the numbered suggestion" in output

    def test_answers_are_case_insensitive(self, report):
        _, reviews, _ = run_review(report, " Y ", "N", "S")
        assert [r.state for r in reviews] == [
            ReviewState.ACCEPTED, ReviewState.REJECTED, ReviewState.SKIPPED]


class TestStopping:
    """Tests for q and end of input."""

    def test_quit(self, report):
        keep_going, reviews, _ = run_review(report, "y", "q")
        assert not keep_going
        assert reviews[0].state is ReviewState.ACCEPTED
        assert [r.state for r in reviews[1:]] == [ReviewState.PENDING] * 2

    def test_end_of_input(self, report):
        keep_going, reviews, _ = run_review(report)
        assert not keep_going
        assert all(r.state is ReviewState.PENDING for r in reviews)


class TestSkippedWithoutAsking:
    """Diagnostics the reviewer never asks about."""

    def test_not_fixable(self, report):
        diagnostic = dataclasses.replace(report.diagnostics[0], fixable=False)
        reviews = [DiagnosticReview(diagnostic)]
        keep_going, _, output = run_review(report, reviews=reviews)
        assert keep_going
        assert reviews[0].state is ReviewState.SKIPPED
        assert reviews[0].reason == "not fixable in place"
        assert output == ""

    def test_overlaps_accepted_correction(self, report):
        diagnostic = report.diagnostics[0]
        accepted = DiagnosticReview(diagnostic)
        accepted.accept()
        pending = DiagnosticReview(diagnostic)
        keep_going, _, _ = run_review(report, reviews=[accepted, pending])
        assert keep_going
        assert pending.state is ReviewState.SKIPPED
        assert pending.reason == "overlaps an accepted correction"

    def test_decided_reviews_left_alone(self, report):
        reviews = [DiagnosticReview(d) for d in report.diagnostics]
        reviews[0].reject()
        _, _, output = run_review(report, "y", "y", reviews=reviews)
        assert reviews[0].state is ReviewState.REJECTED
        assert "[1/2] src/lib.rs" in output
