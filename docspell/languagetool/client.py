"""
LanguageTool Client for DocSpell
================================
Wraps language_tool_python library for grammar checking.

Features:
- Local Java server, a remote server URL, or the public API
- Rule filtering to avoid overlap with the dictionary backends
- Severity mapping from LanguageTool categories
- Bounded admission gate: callers queue instead of piling up requests

Requires: pip install language-tool-python
"""

from typing import List, Dict, Any, Optional, Set
from dataclasses import dataclass
import threading

from ..config import LanguageToolConfig
from ..config_logging import BackendUnavailable, get_logger

logger = get_logger('languagetool')


@dataclass
class GrammarMatch:
    """Represents a grammar issue found by LanguageTool."""
    message: str
    offset: int
    length: int
    replacements: List[str]
    rule_id: str
    category: str
    severity: str


class LanguageToolClient:
    """
    LanguageTool integration for grammar checking.

    One client is shared by every worker; ``check`` blocks while
    ``max_concurrent_requests`` calls are already in flight.
    """

    INTEGRATION_NAME = "LanguageTool"
    INTEGRATION_VERSION = "1.0.0"

    # Severity mapping from LanguageTool categories
    SEVERITY_MAP = {
        'GRAMMAR': 'High',
        'TYPOS': 'High',
        'PUNCTUATION': 'Medium',
        'STYLE': 'Low',
        'TYPOGRAPHY': 'Low',
        'CASING': 'Medium',
        'COLLOCATIONS': 'Low',
        'REDUNDANCY': 'Low',
        'SEMANTICS': 'Medium',
        'MISC': 'Low',
    }

    # Rules to skip on documentation comments
    SKIP_RULES: Set[str] = {
        # Whitespace - comment reflow makes these meaningless
        'WHITESPACE_RULE',
        'DOUBLE_WHITESPACE',
        'CONSECUTIVE_SPACES',
        # Code and links are blanked out before checking
        'COMMA_PARENTHESIS_WHITESPACE',
        'EN_UNPAIRED_BRACKETS',
        'EN_QUOTES',
    }

    def __init__(self, config: Optional[LanguageToolConfig] = None):
        """
        Args:
            config: LanguageTool section of the configuration
        """
        self.config = config or LanguageToolConfig()
        self._tool = None
        self._lt_module = None
        self._error: Optional[str] = None
        self._gate = threading.BoundedSemaphore(self.config.max_concurrent_requests)
        self._disabled_rules = self.SKIP_RULES | set(self.config.disabled_rules)

    def start(self):
        """Connect to (or start) LanguageTool; raises BackendUnavailable."""
        if self._tool is not None:
            return
        try:
            import language_tool_python
        except ImportError as e:
            self._error = f"language-tool-python not installed: {e}"
            raise BackendUnavailable(self._error, backend='languagetool') from e
        self._lt_module = language_tool_python

        try:
            if self.config.public_api:
                self._tool = language_tool_python.LanguageToolPublicAPI(self.config.language)
            elif self.config.remote_server:
                self._tool = language_tool_python.LanguageTool(
                    self.config.language, remote_server=self.config.remote_server
                )
            else:
                # Local server mode - no internet needed once installed
                self._tool = language_tool_python.LanguageTool(
                    self.config.language,
                    config={'cacheSize': 1000, 'pipelineCaching': True}
                )
        except (language_tool_python.utils.LanguageToolError, OSError, RuntimeError) as e:
            self._error = f"LanguageTool initialization failed: {e}"
            raise BackendUnavailable(self._error, backend='languagetool') from e

        logger.info("LanguageTool ready", language=self.config.language,
                    mode=self.mode, max_concurrent_requests=self.config.max_concurrent_requests)

    @property
    def mode(self) -> str:
        if self.config.public_api:
            return 'public_api'
        return 'remote' if self.config.remote_server else 'local'

    @property
    def is_available(self) -> bool:
        """Check if LanguageTool is available."""
        return self._tool is not None

    def get_status(self) -> Dict[str, Any]:
        """Get detailed status of the LanguageTool integration."""
        return {
            'available': self.is_available,
            'language': self.config.language,
            'mode': self.mode,
            'error': self._error,
        }

    def check(self, text: str) -> List[GrammarMatch]:
        """
        Check text for grammar issues.

        Args:
            text: Text to check

        Returns:
            List of GrammarMatch objects

        Raises:
            BackendUnavailable: If the server cannot be reached
        """
        if not text.strip():
            return []

        with self._gate:
            try:
                matches = self._tool.check(text)
            except (self._lt_module.utils.LanguageToolError, OSError) as e:
                self._error = f"Check failed: {e}"
                raise BackendUnavailable(self._error, backend='languagetool') from e

        issues = []
        for match in matches:
            if match.ruleId in self._disabled_rules:
                continue

            # Map category to severity
            category = getattr(match, 'category', None) or 'MISC'
            severity = self.SEVERITY_MAP.get(category, 'Low')

            issues.append(GrammarMatch(
                message=match.message,
                offset=match.offset,
                length=match.errorLength,
                replacements=list(match.replacements or [])[:5],
                rule_id=match.ruleId,
                category=category,
                severity=severity,
            ))

        return issues

    def close(self):
        """Shut down the LanguageTool server."""
        if self._tool is not None:
            self._tool.close()
            self._tool = None
