"""
Checker Orchestrator
====================
Initializes the configured backends once and fans each documentation unit
out to them: words to word backends, sentences to sentence backends.

A backend that becomes unavailable during a run is disabled for the rest of
the run and reported once.
"""

import threading
from typing import List, Dict, Optional, Iterable

from .base import CheckerBackend, Capability, Finding
from .comments import DocumentationUnit
from .config import CheckerConfig
from .config_logging import BackendUnavailable, NoBackendsAvailable, get_logger
from .tokenizer import TokenStream

logger = get_logger('orchestrator')


def create_backend(name: str, config: CheckerConfig) -> CheckerBackend:
    """Instantiate a backend by its configured name."""
    if name in ('symspell', 'hunspell'):
        from .spelling import get_checker
        return get_checker(name)(config)
    if name == 'languagetool':
        from .languagetool import get_checker
        return get_checker()(config)
    raise ValueError(f"Unknown backend: {name}")


class Orchestrator:
    """
    Runs every available backend over documentation units.

    Backends are shared read-only by all workers after ``initialize``.
    """

    def __init__(self, backends: List[CheckerBackend], config: Optional[CheckerConfig] = None):
        self.config = config or CheckerConfig()
        self.backends = sorted(backends, key=lambda b: self.config.priority(b.BACKEND_NAME))
        # capabilities are read once, at registration
        self._capabilities: Dict[str, Capability] = {b.BACKEND_NAME: b.CAPABILITIES for b in backends}
        self._disabled: Dict[str, BackendUnavailable] = {}
        self._lock = threading.Lock()
        self.errors: List[BackendUnavailable] = []

    @classmethod
    def from_config(cls, config: CheckerConfig) -> 'Orchestrator':
        return cls([create_backend(name, config) for name in config.enabled_backends], config)

    def initialize(self):
        """
        Initialize each backend once.

        Raises:
            NoBackendsAvailable: If no backend could be initialized
        """
        for backend in self.backends:
            try:
                backend.initialize()
            except BackendUnavailable as e:
                self._disable(backend, e)
        if not self.active_backends:
            raise NoBackendsAvailable(
                backends={name: error.message for name, error in self._disabled.items()}
            )

    @property
    def active_backends(self) -> List[CheckerBackend]:
        with self._lock:
            return [b for b in self.backends if b.BACKEND_NAME not in self._disabled]

    @property
    def priority(self) -> List[str]:
        return [b.BACKEND_NAME for b in self.backends]

    def _disable(self, backend: CheckerBackend, error: BackendUnavailable):
        with self._lock:
            if backend.BACKEND_NAME in self._disabled:
                return
            self._disabled[backend.BACKEND_NAME] = error
            self.errors.append(error)
        logger.warning(f"Backend disabled: {error.message}", backend=backend.BACKEND_NAME)

    def check_unit(self, unit: DocumentationUnit, stream: TokenStream,
                   backends: Optional[Iterable[str]] = None,
                   ignore_words: Optional[Iterable[str]] = None) -> List[Finding]:
        """
        Check one unit with every active backend.

        Args:
            unit: The unit the stream was built from
            stream: Token stream of the unit's prose
            backends: Restrict to these backend names (per-path selection)
            ignore_words: Words never reported for this unit

        Returns:
            Raw findings in unit offsets, in backend priority order
        """
        allowed = set(backends) if backends is not None else None
        ignored = {w.lower() for w in (ignore_words or [])}
        active = [b for b in self.active_backends
                  if allowed is None or b.BACKEND_NAME in allowed]
        word_backends = [b for b in active if self._capabilities[b.BACKEND_NAME] & Capability.WORD]
        sentence_backends = [b for b in active
                             if self._capabilities[b.BACKEND_NAME] & Capability.SENTENCE]

        findings: List[Finding] = []
        for backend in word_backends:
            for token in stream:
                if token.word.lower() in ignored:
                    continue
                try:
                    finding = backend.check_word(token)
                except BackendUnavailable as e:
                    self._disable(backend, e)
                    break
                if finding is not None:
                    findings.append(finding)

        if sentence_backends:
            sentences = stream.sentences()
            for backend in sentence_backends:
                for sentence in sentences:
                    try:
                        found = backend.check_sentence(sentence)
                    except BackendUnavailable as e:
                        self._disable(backend, e)
                        break
                    findings.extend(f for f in found
                                    if unit.normalized_text[f.start:f.end].lower() not in ignored)

        return [f for f in findings if self._in_bounds(unit, f)]

    @staticmethod
    def _in_bounds(unit: DocumentationUnit, finding: Finding) -> bool:
        if 0 <= finding.start < finding.end <= len(unit.normalized_text):
            return True
        logger.warning("Dropping finding outside its unit", backend=finding.backend,
                       start=finding.start, end=finding.end, file=unit.file_id)
        return False

    def get_status(self) -> Dict[str, Dict]:
        return {b.BACKEND_NAME: {**b.get_status(), 'disabled': b.BACKEND_NAME in self._disabled}
                for b in self.backends}
