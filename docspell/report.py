"""
DocSpell Reporting
==================
Renders a run report as text, JSON or CSV.

All three formats carry the same fields per diagnostic: path, 1-based
line/column, offending text, message, ranked suggestions, backends and
severity.
"""

import csv
import io
import json
from typing import Dict, Optional

from .config_logging import VERSION
from .diagnostics import Diagnostic
from .engine import RunReport
from .span import SourceBuffer


def _source_line(buffer: Optional[SourceBuffer], line: int) -> Optional[str]:
    if buffer is None:
        return None
    lines = buffer.text.split('\n')
    if 0 < line <= len(lines):
        return lines[line - 1].rstrip('\r')
    return None


def _join_suggestions(diagnostic: Diagnostic) -> str:
    words = [s.text for s in diagnostic.suggestions]
    if len(words) > 1:
        return f"{', '.join(words[:-1])} or {words[-1]}"
    return words[0] if words else ""


class TextExporter:
    """Human readable, compiler-style output."""

    @staticmethod
    def render_diagnostic(diagnostic: Diagnostic, buffer: Optional[SourceBuffer] = None) -> str:
        start = diagnostic.span.start
        gutter = ' ' * len(str(start.line))
        lines = [
            f"{diagnostic.severity.value.lower()}: {diagnostic.message}",
            f"{gutter}--> {diagnostic.path}:{start.line}:{start.column}",
        ]
        source = _source_line(buffer, start.line)
        if source is not None:
            width = len(diagnostic.text.split('\n', 1)[0]) or 1
            width = max(1, min(width, len(source) - start.column + 1))
            lines.append(f"{gutter} |")
            lines.append(f"{start.line} | {source}")
            lines.append(f"{gutter} | {' ' * (start.column - 1)}{'^' * width}")
        if diagnostic.suggestions:
            lines.append(f"{gutter} |  - {_join_suggestions(diagnostic)}")
        notes = [f"backends: {', '.join(diagnostic.backends)}"]
        if not diagnostic.fixable:
            notes.append("not fixable in place")
        lines.append(f"{gutter} = {'; '.join(notes)}")
        return '\n'.join(lines)

    @staticmethod
    def export(run: RunReport, filename: str = None) -> str:
        """Render every diagnostic, problem and a summary line."""
        blocks = []
        for report in run.files:
            for diagnostic in report.diagnostics:
                blocks.append(TextExporter.render_diagnostic(diagnostic, report.buffer))
            for warning in report.warnings:
                blocks.append(f"warning: {report.path}: {warning['message']}")
            for error in report.errors:
                blocks.append(f"error: {report.path}: {error['message']}")
        for error in run.backend_errors:
            blocks.append(f"warning: {error['message']}")
        if run.fatal_error is not None:
            blocks.append(f"error: {run.fatal_error['message']}")

        summary = f"{len(run.diagnostics)} finding(s) in {len(run.files)} file(s)"
        if run.fixed:
            applied = sum(r.applied for r in run.files)
            summary += f", {applied} correction(s) applied"
        if run.aborted:
            summary += ", run interrupted"
        blocks.append(summary)

        content = '\n\n'.join(blocks) + '\n'
        if filename:
            with open(filename, 'w', encoding='utf-8') as f:
                f.write(content)
        return content


class JSONExporter:
    """Machine readable output of the whole run."""

    @staticmethod
    def export(run: RunReport, filename: str = None, pretty: bool = True) -> str:
        data = {
            'tool': 'docspell',
            'version': VERSION,
            **run.to_dict(),
        }
        json_content = json.dumps(data, indent=2 if pretty else None, default=str)
        if filename:
            with open(filename, 'w', encoding='utf-8') as f:
                f.write(json_content)
        return json_content


class CSVExporter:
    """One row per diagnostic."""

    FIELDNAMES = ['#', 'Path', 'Line', 'Column', 'Severity', 'Text', 'Message',
                  'Suggestions', 'Backends', 'Rules', 'Fixable']

    @staticmethod
    def export(run: RunReport, filename: str = None) -> str:
        output = io.StringIO()
        writer = csv.DictWriter(output, fieldnames=CSVExporter.FIELDNAMES)
        writer.writeheader()

        for i, diagnostic in enumerate(run.diagnostics, 1):
            writer.writerow({
                '#': i,
                'Path': diagnostic.path,
                'Line': diagnostic.span.start.line,
                'Column': diagnostic.span.start.column,
                'Severity': diagnostic.severity.value,
                'Text': diagnostic.text,
                'Message': diagnostic.message,
                'Suggestions': '; '.join(s.text for s in diagnostic.suggestions),
                'Backends': ', '.join(diagnostic.backends),
                'Rules': ', '.join(diagnostic.rule_ids),
                'Fixable': 'yes' if diagnostic.fixable else 'no',
            })

        csv_content = output.getvalue()
        if filename:
            with open(filename, 'w', newline='', encoding='utf-8') as f:
                f.write(csv_content)
        return csv_content


# Factory function
def get_exporter(format_type: str):
    """Get appropriate exporter for format type."""
    exporters = {
        'text': TextExporter,
        'json': JSONExporter,
        'csv': CSVExporter,
    }

    exporter_class = exporters.get(format_type.lower())
    if not exporter_class:
        raise ValueError(f"Unsupported export format: {format_type}")

    return exporter_class()


def summarize(run: RunReport) -> Dict[str, int]:
    """Counts by severity, for logs and the interactive summary."""
    counts: Dict[str, int] = {}
    for diagnostic in run.diagnostics:
        counts[diagnostic.severity.value] = counts.get(diagnostic.severity.value, 0) + 1
    return counts
