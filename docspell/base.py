"""
Checker Base Classes
====================
Base classes and the finding model shared by every checker backend.

A backend declares what it can check through ``CAPABILITIES`` and implements
the matching subset of ``check_word`` / ``check_sentence``. The orchestrator
reads the capabilities once, when the backend is registered.
"""

from abc import ABC, abstractmethod
from enum import Enum, Flag, auto
from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field

from .config_logging import BackendUnavailable, get_logger
from .tokenizer import Token, Sentence

__version__ = "1.0.0"


class Capability(Flag):
    WORD = auto()
    SENTENCE = auto()


class Severity(Enum):
    HIGH = 'High'
    MEDIUM = 'Medium'
    LOW = 'Low'
    INFO = 'Info'

    @property
    def rank(self) -> int:
        """Higher is more severe."""
        return {'High': 3, 'Medium': 2, 'Low': 1, 'Info': 0}[self.value]


@dataclass(frozen=True)
class Suggestion:
    """A replacement proposed by a backend."""
    text: str
    confidence: float  # 0.0 to 1.0
    backend: str

    def to_dict(self) -> Dict[str, Any]:
        return {'text': self.text, 'confidence': round(self.confidence, 4),
                'backend': self.backend}


@dataclass
class Finding:
    """
    Raw output of one backend for one range of a unit's normalized text.

    ``start``/``end`` are offsets into the unit text; the diagnostic
    aggregator maps them to the file.
    """
    start: int
    end: int
    message: str
    backend: str
    suggestions: List[Suggestion] = field(default_factory=list)
    severity: Severity = Severity.MEDIUM
    rule_id: str = ""
    category: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'start': self.start,
            'end': self.end,
            'message': self.message,
            'backend': self.backend,
            'suggestions': [s.to_dict() for s in self.suggestions],
            'severity': self.severity.value,
            'rule_id': self.rule_id,
            'category': self.category,
        }


class CheckerBackend(ABC):
    """
    Abstract base class for checker backends.

    Subclasses set BACKEND_NAME and CAPABILITIES, implement ``_initialize``
    and the check methods matching their capabilities.
    """

    BACKEND_NAME: str = "backend"
    BACKEND_VERSION: str = "1.0.0"
    CAPABILITIES: Capability = Capability(0)

    def __init__(self):
        self._initialized = False
        self._init_error: Optional[str] = None
        self.logger = get_logger(f"backend.{self.BACKEND_NAME}")

    @abstractmethod
    def _initialize(self):
        """
        Load dictionaries, connect to services, etc.

        Raises:
            BackendUnavailable: If the backend cannot be used
        """

    def initialize(self):
        """Initialize once; later calls are no-ops or re-raise the first failure."""
        if self._initialized:
            return
        if self._init_error is not None:
            raise BackendUnavailable(self._init_error, backend=self.BACKEND_NAME)
        try:
            self._initialize()
        except BackendUnavailable as e:
            self._init_error = e.message
            raise
        except Exception as e:
            self._init_error = f"Initialization failed: {e}"
            raise BackendUnavailable(self._init_error, backend=self.BACKEND_NAME) from e
        self._initialized = True
        self.logger.debug("Backend initialized", backend=self.BACKEND_NAME)

    @property
    def is_available(self) -> bool:
        return self._initialized

    def supports(self, capability: Capability) -> bool:
        return bool(self.CAPABILITIES & capability)

    def check_word(self, token: Token) -> Optional[Finding]:
        """Check one word; None when it is correct."""
        raise NotImplementedError(f"{self.BACKEND_NAME} does not check words")

    def check_sentence(self, sentence: Sentence) -> List[Finding]:
        """Check one sentence; findings use unit offsets."""
        raise NotImplementedError(f"{self.BACKEND_NAME} does not check sentences")

    def get_status(self) -> Dict[str, Any]:
        return {
            'backend': self.BACKEND_NAME,
            'available': self.is_available,
            'error': self._init_error,
            'capabilities': [c.name.lower() for c in Capability if c in self.CAPABILITIES],
        }

    def create_finding(
        self,
        start: int,
        end: int,
        message: str,
        suggestions: Optional[List[str]] = None,
        confidences: Optional[List[float]] = None,
        severity: Severity = Severity.MEDIUM,
        rule_id: str = "",
        category: str = ""
    ) -> Finding:
        """Helper to create a Finding with backend metadata."""
        suggestions = suggestions or []
        confidences = confidences or [1.0] * len(suggestions)
        return Finding(
            start=start,
            end=end,
            message=message,
            backend=self.BACKEND_NAME,
            suggestions=[Suggestion(text, confidence, self.BACKEND_NAME)
                         for text, confidence in zip(suggestions, confidences)],
            severity=severity,
            rule_id=rule_id,
            category=category or self.BACKEND_NAME,
        )
