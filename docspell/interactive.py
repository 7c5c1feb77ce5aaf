"""
Interactive Review
==================
Console review of the diagnostics of one file before it is patched.
"""

import sys
from typing import Callable, List, Optional, TextIO

from .engine import FileReport
from .patcher import DiagnosticReview, ReviewState
from .report import TextExporter

HELP = """\
  y      accept the first suggestion
  1-9    accept the numbered suggestion
  e      enter a replacement
  n      reject this correction
  s      skip this correction
  q      stop reviewing (nothing further is changed)
  ?      show this help"""


class ConsoleReviewer:
    """
    Asks on the console what to do with each fixable diagnostic.

    Reviews already decided (for example by ``--auto``) are not asked again.
    """

    def __init__(self, input_func: Callable[[str], str] = input, output: Optional[TextIO] = None):
        self.input = input_func
        self.output = output or sys.stdout

    def _print(self, text: str = ""):
        print(text, file=self.output)

    def _ask(self, prompt: str) -> str:
        try:
            return self.input(prompt).strip()
        except EOFError:
            return 'q'

    def review(self, report: FileReport, reviews: List[DiagnosticReview]) -> bool:
        """
        Review one file.

        Returns:
            False if the user asked to stop reviewing
        """
        accepted = [r.diagnostic.span for r in reviews if r.state is ReviewState.ACCEPTED]
        pending = [r for r in reviews if r.state is ReviewState.PENDING]
        for index, review in enumerate(pending, 1):
            diagnostic = review.diagnostic
            if not diagnostic.fixable:
                review.skip("not fixable in place")
                continue
            if any(diagnostic.span.overlaps(span) for span in accepted):
                review.skip("overlaps an accepted correction")
                continue

            self._print()
            self._print(f"[{index}/{len(pending)}] {report.path}")
            self._print(TextExporter.render_diagnostic(diagnostic, report.buffer))
            for number, suggestion in enumerate(diagnostic.suggestions, 1):
                self._print(f"  {number}) {suggestion.text}")

            if not self._decide(review):
                return False
            if review.state is ReviewState.ACCEPTED:
                accepted.append(diagnostic.span)
        return True

    def _decide(self, review: DiagnosticReview) -> bool:
        suggestions = review.diagnostic.suggestions
        while True:
            answer = self._ask("Apply? [y,1-9,e,n,s,q,?] ").lower()
            if answer == 'q':
                return False
            if answer == '?':
                self._print(HELP)
            elif answer == 'y' and suggestions:
                review.accept()
                return True
            elif answer.isdigit() and 1 <= int(answer) <= len(suggestions):
                review.accept(suggestions[int(answer) - 1].text)
                return True
            elif answer == 'e':
                replacement = self._ask("Replacement: ")
                if replacement:
                    review.accept(replacement)
                    return True
            elif answer == 'n':
                review.reject()
                return True
            elif answer == 's':
                review.skip("skipped by user")
                return True
            else:
                self._print("Unknown answer, '?' shows the options")
