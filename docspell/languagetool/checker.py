"""
Grammar Backend for DocSpell
============================
Sentence-level checker backend wrapping the LanguageTool client.

Inherits from CheckerBackend for consistent interface.
"""

from typing import List, Optional

from ..base import CheckerBackend, Capability, Finding, Severity
from ..config import CheckerConfig
from ..tokenizer import Sentence
from .client import LanguageToolClient, GrammarMatch


class LanguageToolBackend(CheckerBackend):
    """
    Grammar and style checking using LanguageTool.

    Sentences arrive with code and link characters blanked to spaces, so
    match offsets line up with the unit text.
    """

    BACKEND_NAME = "languagetool"
    CAPABILITIES = Capability.SENTENCE

    # Categories to include
    INCLUDE_CATEGORIES = {
        'GRAMMAR', 'TYPOS', 'PUNCTUATION', 'STYLE',
        'CASING', 'COLLOCATIONS', 'REDUNDANCY', 'SEMANTICS', 'MISC'
    }

    def __init__(self, config: Optional[CheckerConfig] = None,
                 client: Optional[LanguageToolClient] = None):
        """
        Args:
            config: Resolved configuration
            client: Client to use instead of the shared one
        """
        super().__init__()
        self.config = config or CheckerConfig()
        self._client = client

    def _initialize(self):
        """Start or connect to the LanguageTool client."""
        if self._client is None:
            from . import get_client
            self._client = get_client(self.config.languagetool)
        self._client.start()

    def check_sentence(self, sentence: Sentence) -> List[Finding]:
        """
        Check one sentence for grammar issues.

        Raises:
            BackendUnavailable: If the server went away
        """
        findings = []
        for match in self._client.check(sentence.text):
            if match.category not in self.INCLUDE_CATEGORIES:
                continue
            if not sentence.text[match.offset:match.offset + match.length].strip():
                # points into a blanked code or link range
                continue
            findings.append(self._convert_match(match, sentence))
        return findings

    def _convert_match(self, match: GrammarMatch, sentence: Sentence) -> Finding:
        """Convert a LanguageTool match to a Finding in unit offsets."""
        start = sentence.start + match.offset
        replacements = match.replacements
        return self.create_finding(
            start=start,
            end=start + match.length,
            message=match.message,
            suggestions=replacements,
            confidences=[max(0.9 - 0.05 * rank, 0.0) for rank in range(len(replacements))],
            severity=Severity(match.severity),
            rule_id=match.rule_id,
            category=f"Grammar/{match.category}",
        )

    def get_status(self):
        status = super().get_status()
        if self._client is not None:
            status['client'] = self._client.get_status()
        return status
