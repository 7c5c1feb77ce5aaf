"""
DocSpell Pipeline Engine
========================
Runs the check pipeline over a set of files on a worker pool and applies
accepted corrections.

Per file: read -> extract literals -> aggregate units -> segment ->
tokenize -> orchestrate backends -> aggregate diagnostics.

Per-file failures are recorded on the file's report and never abort the
run. A shared cancellation event stops queued files and makes workers stop
between units.
"""

import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed, CancelledError
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import List, Dict, Any, Optional, Iterable

from .comments import aggregate
from .config import CheckerConfig
from .config_logging import (
    DocSpellError, ParseError, IoError, PatchConflict, SegmentationError, NoBackendsAvailable,
    StructuredLogger, get_logger,
)
from .diagnostics import Diagnostic, UnitFindings, aggregate_findings
from .extractor import extract_literals
from .orchestrator import Orchestrator
from .patcher import DiagnosticReview, FilePatch, ReviewState, auto_accept
from .segmenter import segment
from .span import SourceBuffer
from .tokenizer import tokenize

__version__ = "1.0.0"

logger = get_logger('engine')


class ExitCode(IntEnum):
    SUCCESS = 0
    FINDINGS = 1
    FATAL = 2
    FILE_ERRORS = 3
    ABORTED = 130


# Most severe first
EXIT_CODE_SEVERITY = [ExitCode.FATAL, ExitCode.ABORTED, ExitCode.FILE_ERRORS,
                      ExitCode.FINDINGS, ExitCode.SUCCESS]


def most_severe(codes: Iterable[ExitCode]) -> ExitCode:
    """The most severe of several outcomes (SUCCESS when empty)."""
    codes = set(codes)
    for code in EXIT_CODE_SEVERITY:
        if code in codes:
            return code
    return ExitCode.SUCCESS


@dataclass
class FileReport:
    """Outcome of checking (and possibly fixing) one file."""
    path: str
    buffer: Optional[SourceBuffer] = field(default=None, repr=False)
    units: int = 0
    diagnostics: List[Diagnostic] = field(default_factory=list)
    warnings: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    cancelled: bool = False
    applied: int = 0
    unresolved: Optional[int] = None
    persisted: bool = False

    def add_warning(self, error: DocSpellError):
        self.warnings.append(error.to_dict())
        logger.warning(error.message, path=self.path, code=error.code)

    def add_error(self, error: DocSpellError):
        self.errors.append(error.to_dict())
        logger.error(error.message, path=self.path, code=error.code)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'path': self.path,
            'units': self.units,
            'diagnostics': [d.to_dict() for d in self.diagnostics],
            'warnings': self.warnings,
            'errors': self.errors,
            'cancelled': self.cancelled,
            'applied': self.applied,
            'unresolved': self.unresolved,
        }


@dataclass
class RunReport:
    """Outcome of a whole run."""
    files: List[FileReport] = field(default_factory=list)
    backend_errors: List[Dict[str, Any]] = field(default_factory=list)
    aborted: bool = False
    fixed: bool = False
    fatal_error: Optional[Dict[str, Any]] = None

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return [d for report in self.files for d in report.diagnostics]

    @property
    def has_file_errors(self) -> bool:
        return any(report.errors for report in self.files)

    @property
    def remaining_findings(self) -> int:
        """Diagnostics not fixed: all of them in check mode, unapplied ones after a fix."""
        if not self.fixed:
            return len(self.diagnostics)
        return sum(r.unresolved if r.unresolved is not None else len(r.diagnostics)
                   for r in self.files)

    def outcome(self) -> ExitCode:
        outcomes = []
        if self.fatal_error is not None:
            outcomes.append(ExitCode.FATAL)
        if self.aborted:
            outcomes.append(ExitCode.ABORTED)
        if self.has_file_errors:
            outcomes.append(ExitCode.FILE_ERRORS)
        if self.remaining_findings:
            outcomes.append(ExitCode.FINDINGS)
        return most_severe(outcomes)

    def exit_code(self, findings_code: int = int(ExitCode.FINDINGS)) -> int:
        """Process exit status; FINDINGS maps to ``findings_code``."""
        outcome = self.outcome()
        if outcome is ExitCode.FINDINGS:
            return findings_code
        return int(outcome)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'files': [report.to_dict() for report in self.files],
            'backend_errors': self.backend_errors,
            'aborted': self.aborted,
            'fatal_error': self.fatal_error,
            'total_diagnostics': len(self.diagnostics),
        }


class Engine:
    """
    Checks files in parallel with one shared set of backends.

    Backends are initialized once, before any file is processed.
    """

    def __init__(self, config: CheckerConfig, orchestrator: Optional[Orchestrator] = None,
                 cancel_event: Optional[threading.Event] = None, jobs: Optional[int] = None):
        self.config = config
        self.orchestrator = orchestrator or Orchestrator.from_config(config)
        self.cancel_event = cancel_event or threading.Event()
        self.jobs = jobs or config.jobs or os.cpu_count() or 1
        self._initialized = False
        self._fatal: Optional[NoBackendsAvailable] = None
        self._fatal_lock = threading.Lock()

    def cancel(self):
        """Stop the run: queued files are dropped, workers stop between units."""
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def initialize(self):
        """
        Initialize the backends once.

        Raises:
            NoBackendsAvailable: If no backend can be used
        """
        if not self._initialized:
            self.orchestrator.initialize()
            self._initialized = True

    def _check_backends_left(self) -> bool:
        """
        Stop the run once every backend has been disabled.

        Returns:
            False if nothing is left to check with
        """
        if self.orchestrator.active_backends:
            return True
        with self._fatal_lock:
            if self._fatal is None:
                self._fatal = NoBackendsAvailable(
                    "Every checker backend failed during the run",
                    backends={e.backend: e.message for e in self.orchestrator.errors},
                )
                logger.error(self._fatal.message, **self._fatal.details)
        self.cancel_event.set()
        return False

    def check(self, paths: Iterable) -> RunReport:
        """
        Check every file and collect the diagnostics.

        Args:
            paths: Files to check (output of discovery)

        Returns:
            RunReport with file reports sorted by path
        """
        paths = [Path(p) for p in paths]
        run_id = StructuredLogger.new_correlation_id()
        run = RunReport()

        with logger.log_operation('check', files=len(paths), jobs=self.jobs):
            self.initialize()

            def worker(path: Path) -> FileReport:
                StructuredLogger.set_correlation_id(run_id)
                return self.check_file(path)

            reports: List[FileReport] = []
            with ThreadPoolExecutor(max_workers=self.jobs) as executor:
                future_to_path = {executor.submit(worker, path): path for path in paths}
                for future in as_completed(future_to_path):
                    if self.cancelled:
                        for pending in future_to_path:
                            pending.cancel()
                    try:
                        reports.append(future.result())
                    except CancelledError:
                        reports.append(FileReport(path=str(future_to_path[future]), cancelled=True))

        run.files = sorted(reports, key=lambda r: r.path)
        run.aborted = self.cancelled or any(r.cancelled for r in run.files)
        run.backend_errors = [e.to_dict() for e in self.orchestrator.errors]
        if self._fatal is not None:
            run.fatal_error = self._fatal.to_dict()
        return run

    def check_file(self, path: Path) -> FileReport:
        """Run the pipeline for one file; failures end up on the report."""
        report = FileReport(path=str(path))
        if self.cancelled:
            report.cancelled = True
            return report

        config = self.config.for_path(path)
        try:
            buffer = SourceBuffer.from_path(path)
            report.buffer = buffer
            literals = extract_literals(buffer)
        except ParseError as e:
            report.add_warning(e)
            return report
        except OSError as e:
            report.add_error(IoError(f"Cannot read {path}: {e}", path=str(path)))
            return report

        units = aggregate(buffer, literals)
        report.units = len(units)

        unit_findings: List[UnitFindings] = []
        for unit in units:
            if self.cancelled:
                report.cancelled = True
                break
            try:
                segments = segment(unit.normalized_text)
            except SegmentationError as e:
                report.add_error(e)
                continue
            stream = tokenize(unit, segments, config.tokenizer)
            findings = self.orchestrator.check_unit(
                unit, stream,
                backends=config.enabled_backends,
                ignore_words=config.ignore_words,
            )
            unit_findings.append(UnitFindings(unit, findings, segments))
            if not self._check_backends_left():
                report.cancelled = True
                break

        report.diagnostics = aggregate_findings(
            unit_findings, self.orchestrator.priority, config.suggestion_limit
        )
        logger.debug("File checked", path=report.path, units=report.units,
                     diagnostics=len(report.diagnostics))
        return report

    def fix(self, run: RunReport, reviewer=None, auto: bool = False,
            threshold: Optional[float] = None) -> RunReport:
        """
        Review diagnostics and write accepted corrections back.

        Args:
            run: Report of a previous ``check``
            reviewer: Object with ``review(file_report, reviews) -> bool``;
                      returning False stops reviewing further files
            auto: Accept confident suggestions without asking
            threshold: Minimum confidence for ``auto`` (default from config)
        """
        threshold = self.config.auto_accept_threshold if threshold is None else threshold
        run.fixed = True
        reviewing = reviewer is not None

        with logger.log_operation('fix', files=len(run.files), auto=auto):
            for report in run.files:
                if self.cancelled:
                    run.aborted = True
                    break
                if report.buffer is None or not report.diagnostics:
                    report.unresolved = len(report.diagnostics)
                    continue

                reviews = [DiagnosticReview(d) for d in report.diagnostics]
                if auto:
                    auto_accept(reviews, threshold)
                if reviewing:
                    reviewing = reviewer.review(report, reviews)

                report.unresolved = sum(1 for r in reviews if r.state is not ReviewState.ACCEPTED)
                self._write(report, reviews)

        return run

    def _write(self, report: FileReport, reviews: List[DiagnosticReview]):
        patch = FilePatch(report.buffer, reviews)
        patch.mark_reviewed()
        try:
            patch.apply()
            report.persisted = patch.persist()
        except (PatchConflict, IoError) as e:
            report.add_error(e)
            report.unresolved = len(reviews)
            return
        if report.persisted:
            report.applied = len(patch.accepted)
