"""
Patch Engine
============
Review state per diagnostic, replacement planning per file, and atomic
rewriting of the original file.

Replacements only ever select byte ranges of the buffer read at extraction
time. A file is rewritten only when it still has the digest recorded then,
and only through a temporary file renamed over the original.
"""

import os
import shutil
import hashlib
import tempfile
from enum import Enum
from dataclasses import dataclass
from typing import List, Optional, Iterable

from .config_logging import DocSpellError, PatchConflict, IoError, get_logger
from .diagnostics import Diagnostic
from .span import SourceBuffer

__version__ = "1.0.0"

logger = get_logger('patcher')


class ReviewState(Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    SKIPPED = "skipped"


class FilePatchState(Enum):
    PENDING = "pending"
    REVIEWED = "reviewed"
    APPLIED = "applied"
    PERSISTED = "persisted"


class InvalidTransition(DocSpellError):
    """A review or patch state change that is not allowed."""
    def __init__(self, message: str, **kwargs):
        super().__init__(message, code="INVALID_TRANSITION", details=kwargs)


_REVIEW_TRANSITIONS = {
    ReviewState.PENDING: {ReviewState.ACCEPTED, ReviewState.REJECTED, ReviewState.SKIPPED},
}

_PATCH_TRANSITIONS = {
    FilePatchState.PENDING: {FilePatchState.REVIEWED},
    FilePatchState.REVIEWED: {FilePatchState.APPLIED},
    FilePatchState.APPLIED: {FilePatchState.PERSISTED},
}


@dataclass
class DiagnosticReview:
    """The decision taken for one diagnostic."""
    diagnostic: Diagnostic
    state: ReviewState = ReviewState.PENDING
    replacement: Optional[str] = None
    reason: str = ""

    def _transition(self, target: ReviewState):
        if target not in _REVIEW_TRANSITIONS.get(self.state, set()):
            raise InvalidTransition(
                f"Cannot move a {self.state.value} review to {target.value}",
                path=self.diagnostic.path, line=self.diagnostic.span.start.line,
            )
        self.state = target

    def accept(self, replacement: Optional[str] = None):
        """Accept ``replacement`` (default: the best suggestion)."""
        if not self.diagnostic.fixable:
            raise InvalidTransition("Diagnostic cannot be fixed in place",
                                    path=self.diagnostic.path)
        if replacement is None:
            best = self.diagnostic.best_suggestion
            if best is None:
                raise InvalidTransition("Diagnostic has no suggestion to accept",
                                        path=self.diagnostic.path)
            replacement = best.text
        self._transition(ReviewState.ACCEPTED)
        self.replacement = replacement

    def reject(self):
        self._transition(ReviewState.REJECTED)

    def skip(self, reason: str = ""):
        self._transition(ReviewState.SKIPPED)
        self.reason = reason


def auto_accept(reviews: Iterable[DiagnosticReview], threshold: float) -> int:
    """
    Accept the top suggestion of every confident, fixable diagnostic.

    Candidates are taken in file order; one that overlaps an already
    accepted correction is skipped with a reason.

    Returns:
        Number of newly accepted reviews
    """
    reviews = list(reviews)
    accepted = [r.diagnostic.span for r in reviews if r.state is ReviewState.ACCEPTED]
    count = 0
    for review in sorted(reviews, key=lambda r: (r.diagnostic.path,
                                                 r.diagnostic.span.start_byte,
                                                 -r.diagnostic.span.length)):
        if review.state is not ReviewState.PENDING:
            continue
        diagnostic = review.diagnostic
        best = diagnostic.best_suggestion
        if not diagnostic.fixable or best is None or best.confidence < threshold:
            continue
        if any(diagnostic.span.overlaps(span) for span in accepted):
            review.skip("overlaps an accepted correction")
            continue
        review.accept()
        accepted.append(diagnostic.span)
        count += 1
    return count


class FilePatch:
    """
    Accepted corrections for one file and the steps to write them.

    PENDING -> REVIEWED -> APPLIED -> PERSISTED.
    """

    def __init__(self, buffer: SourceBuffer, reviews: List[DiagnosticReview]):
        self.buffer = buffer
        self.path = buffer.file_id
        self.reviews = reviews
        self.state = FilePatchState.PENDING
        self.patched: Optional[bytes] = None

    def _transition(self, target: FilePatchState):
        if target not in _PATCH_TRANSITIONS.get(self.state, set()):
            raise InvalidTransition(
                f"Cannot move a {self.state.value} patch to {target.value}", path=self.path)
        self.state = target

    @property
    def accepted(self) -> List[DiagnosticReview]:
        return [r for r in self.reviews if r.state is ReviewState.ACCEPTED]

    @property
    def unresolved(self) -> List[DiagnosticReview]:
        return [r for r in self.reviews if r.state is not ReviewState.ACCEPTED]

    def mark_reviewed(self):
        self._transition(FilePatchState.REVIEWED)

    def _check_overlaps(self):
        ordered = sorted(self.accepted, key=lambda r: r.diagnostic.span.start_byte)
        for previous, current in zip(ordered, ordered[1:]):
            if previous.diagnostic.span.overlaps(current.diagnostic.span):
                raise PatchConflict(
                    "Accepted corrections overlap",
                    path=self.path,
                    first=previous.diagnostic.span.to_dict(),
                    second=current.diagnostic.span.to_dict(),
                )

    def _check_unchanged(self):
        try:
            with open(self.path, 'rb') as f:
                digest = hashlib.sha256(f.read()).hexdigest()
        except OSError as e:
            raise IoError(f"Cannot re-read {self.path}: {e}", path=self.path) from e
        if digest != self.buffer.digest:
            raise PatchConflict("File changed since it was checked", path=self.path)

    def apply(self) -> bytes:
        """
        Build the patched file contents.

        Raises:
            PatchConflict: Overlapping accepted corrections, or the file on
                           disk no longer matches the checked contents
        """
        if self.state is FilePatchState.PENDING:
            self.mark_reviewed()
        accepted = self.accepted
        if accepted:
            self._check_overlaps()
            self._check_unchanged()

        data = bytearray(self.buffer.data)
        for review in sorted(accepted, key=lambda r: r.diagnostic.span.start_byte, reverse=True):
            span = review.diagnostic.span
            data[span.start_byte:span.end_byte] = review.replacement.encode('utf-8')

        self.patched = bytes(data)
        self._transition(FilePatchState.APPLIED)
        return self.patched

    def persist(self) -> bool:
        """
        Atomically replace the file with the patched contents.

        Returns:
            True if the file was rewritten, False when nothing was accepted

        Raises:
            PatchConflict: The file changed since ``apply``
            IoError: Writing or renaming failed; the original is untouched
        """
        if self.state is FilePatchState.REVIEWED or self.state is FilePatchState.PENDING:
            self.apply()
        if not self.accepted:
            self._transition(FilePatchState.PERSISTED)
            return False

        self._check_unchanged()
        directory = os.path.dirname(os.path.abspath(self.path))
        name = os.path.basename(self.path)
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=f".{name}.", suffix=".docspell", dir=directory)
        except OSError as e:
            raise IoError(f"Cannot create temporary file next to {self.path}: {e}",
                          path=self.path) from e

        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(self.patched)
                f.flush()
                os.fsync(f.fileno())
            shutil.copymode(self.path, tmp_path)
            os.replace(tmp_path, self.path)
        except OSError as e:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise IoError(f"Failed to write {self.path}: {e}", path=self.path) from e

        self._transition(FilePatchState.PERSISTED)
        logger.info("File patched", path=self.path, corrections=len(self.accepted))
        return True
