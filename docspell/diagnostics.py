"""
Diagnostic Aggregator
=====================
Maps raw backend findings to file spans and merges findings that address
the same bytes into one diagnostic.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Tuple, Any, Iterable, Sequence

from .base import Finding, Severity, Suggestion
from .comments import DocumentationUnit
from .segmenter import Segment, SegmentKind
from .span import SourceSpan

__version__ = "1.0.0"


@dataclass(frozen=True)
class Diagnostic:
    """
    One reportable problem at one file span.

    ``fixable`` is True only when the flagged text maps to a single
    contiguous run of verbatim source bytes.
    """
    span: SourceSpan
    text: str
    message: str
    suggestions: Tuple[Suggestion, ...]
    backends: Tuple[str, ...]
    severity: Severity
    rule_ids: Tuple[str, ...] = ()
    category: str = ""
    fixable: bool = True
    heading: bool = False

    @property
    def path(self) -> str:
        return self.span.file_id

    @property
    def source_backend(self) -> str:
        return self.backends[0]

    @property
    def best_suggestion(self):
        return self.suggestions[0] if self.suggestions else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'path': self.path,
            'line': self.span.start.line,
            'column': self.span.start.column,
            'end_line': self.span.end.line,
            'end_column': self.span.end.column,
            'start_byte': self.span.start_byte,
            'end_byte': self.span.end_byte,
            'text': self.text,
            'message': self.message,
            'suggestions': [s.to_dict() for s in self.suggestions],
            'backends': list(self.backends),
            'severity': self.severity.value,
            'rule_ids': list(self.rule_ids),
            'category': self.category,
            'fixable': self.fixable,
            'heading': self.heading,
        }


@dataclass
class UnitFindings:
    """Findings of all backends for one unit, with the unit's segmentation."""
    unit: DocumentationUnit
    findings: List[Finding]
    segments: Sequence[Segment] = field(default_factory=list)

    def in_heading(self, finding: Finding) -> bool:
        return any(s.kind is SegmentKind.HEADING and s.start <= finding.start < s.end
                   for s in self.segments)


def _rank(priority: Sequence[str], backend: str) -> int:
    try:
        return priority.index(backend)
    except ValueError:
        return len(priority)


def merge_suggestions(suggestions: Iterable[Suggestion], priority: Sequence[str],
                      limit: int) -> Tuple[Suggestion, ...]:
    """
    Union suggestions by text and rank them.

    Duplicates keep their highest confidence (ties go to the higher-priority
    backend). Order: confidence descending, backend priority, text.
    """
    best: Dict[str, Suggestion] = {}
    for suggestion in suggestions:
        current = best.get(suggestion.text)
        if (current is None
                or suggestion.confidence > current.confidence
                or (suggestion.confidence == current.confidence
                    and _rank(priority, suggestion.backend) < _rank(priority, current.backend))):
            best[suggestion.text] = suggestion
    ordered = sorted(best.values(),
                     key=lambda s: (-s.confidence, _rank(priority, s.backend), s.text))
    return tuple(ordered[:limit])


def _merge(group: List[Tuple[UnitFindings, Finding]], priority: Sequence[str],
           limit: int) -> Diagnostic:
    group = sorted(group, key=lambda item: (_rank(priority, item[1].backend), item[1].message))
    unit_findings, primary = group[0]
    unit = unit_findings.unit
    mapped = unit.map_range(primary.start, primary.end)

    fixable = mapped.contiguous and mapped.verbatim
    if fixable:
        text = unit.buffer.slice(mapped.span).decode('utf-8')
    else:
        text = unit.normalized_text[primary.start:primary.end]

    backends = tuple(dict.fromkeys(f.backend for _, f in group))
    rule_ids = tuple(dict.fromkeys(f.rule_id for _, f in group if f.rule_id))
    severity = max((f.severity for _, f in group), key=lambda s: s.rank)
    suggestions = merge_suggestions((s for _, f in group for s in f.suggestions), priority, limit)

    return Diagnostic(
        span=mapped.span,
        text=text,
        message=primary.message,
        suggestions=suggestions,
        backends=backends,
        severity=severity,
        rule_ids=rule_ids,
        category=primary.category,
        fixable=fixable,
        heading=any(uf.in_heading(f) for uf, f in group),
    )


def sort_key(diagnostic: Diagnostic, priority: Sequence[str] = ()):
    return (
        diagnostic.path,
        diagnostic.span.start_byte,
        -diagnostic.span.length,
        _rank(priority, diagnostic.source_backend),
        diagnostic.source_backend,
        diagnostic.message,
    )


def aggregate_findings(unit_findings: Iterable[UnitFindings], priority: Sequence[str],
                       limit: int = 3) -> List[Diagnostic]:
    """
    Merge findings of all backends into diagnostics.

    Args:
        unit_findings: Findings per unit
        priority: Backend names, most important first
        limit: Maximum number of suggestions per diagnostic

    Returns:
        Diagnostics sorted by path, start byte, descending length, then
        backend and message
    """
    groups: Dict[Tuple[str, int, int], List[Tuple[UnitFindings, Finding]]] = {}
    for entry in unit_findings:
        for finding in entry.findings:
            span = entry.unit.map_range(finding.start, finding.end).span
            key = (span.file_id, span.start_byte, span.end_byte)
            groups.setdefault(key, []).append((entry, finding))

    diagnostics = [_merge(group, priority, limit) for group in groups.values()]
    diagnostics.sort(key=lambda d: sort_key(d, priority))
    return diagnostics
