"""
Span & Source Model
===================
Addressable byte ranges into named source buffers.

A SourceBuffer holds the raw bytes of one file together with its decoded
text. All positions handed out by the pipeline are byte offsets into
``SourceBuffer.data``; the character-to-byte conversion happens here and
nowhere else.
"""

import bisect
import hashlib
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional

from .config_logging import ParseError


@dataclass(frozen=True, order=True)
class LineColumn:
    """A 1-based line and 1-based column (counted in characters)."""
    line: int
    column: int

    def to_dict(self) -> Dict[str, int]:
        return {'line': self.line, 'column': self.column}


@dataclass(frozen=True)
class SourceSpan:
    """
    An immutable byte range into a named source buffer.

    ``end_byte`` is exclusive and ``end`` is the line/column of ``end_byte``.
    """
    file_id: str
    start_byte: int
    end_byte: int
    start: LineColumn
    end: LineColumn

    @property
    def length(self) -> int:
        return self.end_byte - self.start_byte

    def overlaps(self, other: 'SourceSpan') -> bool:
        """True if both spans share at least one byte of the same file."""
        if self.file_id != other.file_id:
            return False
        return self.start_byte < other.end_byte and other.start_byte < self.end_byte

    def contains(self, other: 'SourceSpan') -> bool:
        return (self.file_id == other.file_id
                and self.start_byte <= other.start_byte
                and other.end_byte <= self.end_byte)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'file': self.file_id,
            'start_byte': self.start_byte,
            'end_byte': self.end_byte,
            'start': self.start.to_dict(),
            'end': self.end.to_dict(),
        }


class SourceBuffer:
    """
    Raw bytes of one source file plus its decoded text.

    Provides the conversions char index -> byte offset and
    byte offset -> line/column.
    """

    def __init__(self, file_id: str, data: bytes):
        self.file_id = file_id
        self.data = data
        try:
            self.text = data.decode('utf-8')
        except UnicodeDecodeError as e:
            raise ParseError(f"File is not valid UTF-8: {e}", path=file_id) from e

        self.digest = hashlib.sha256(data).hexdigest()
        self._char_to_byte: Optional[List[int]] = None
        if len(self.text) != len(data):
            offsets = []
            position = 0
            for ch in self.text:
                offsets.append(position)
                position += len(ch.encode('utf-8'))
            offsets.append(position)
            self._char_to_byte = offsets

        self._line_starts: List[int] = [0]
        for index, byte in enumerate(data):
            if byte == 0x0A:
                self._line_starts.append(index + 1)

    @classmethod
    def from_text(cls, file_id: str, text: str) -> 'SourceBuffer':
        return cls(file_id, text.encode('utf-8'))

    @classmethod
    def from_path(cls, path) -> 'SourceBuffer':
        with open(path, 'rb') as f:
            return cls(str(path), f.read())

    def byte_offset(self, char_index: int) -> int:
        """Convert an index into ``text`` to a byte offset into ``data``."""
        if self._char_to_byte is None:
            return char_index
        return self._char_to_byte[char_index]

    def line_column(self, byte_offset: int) -> LineColumn:
        """1-based line/column of a byte offset."""
        line_index = bisect.bisect_right(self._line_starts, byte_offset) - 1
        line_start = self._line_starts[line_index]
        column = len(self.data[line_start:byte_offset].decode('utf-8', errors='replace'))
        return LineColumn(line_index + 1, column + 1)

    def span(self, start_byte: int, end_byte: int) -> SourceSpan:
        """Build a span from byte offsets."""
        if not 0 <= start_byte <= end_byte <= len(self.data):
            raise ValueError(
                f"Span {start_byte}..{end_byte} out of bounds for {self.file_id} "
                f"({len(self.data)} bytes)"
            )
        return SourceSpan(
            file_id=self.file_id,
            start_byte=start_byte,
            end_byte=end_byte,
            start=self.line_column(start_byte),
            end=self.line_column(end_byte),
        )

    def char_span(self, start_char: int, end_char: int) -> SourceSpan:
        """Build a span from indices into ``text``."""
        return self.span(self.byte_offset(start_char), self.byte_offset(end_char))

    def slice(self, span: SourceSpan) -> bytes:
        return self.data[span.start_byte:span.end_byte]

    def __len__(self) -> int:
        return len(self.data)

    def __repr__(self) -> str:
        return f"SourceBuffer({self.file_id!r}, {len(self.data)} bytes)"


@dataclass(frozen=True)
class MappedRun:
    """
    One entry of a documentation unit's text-to-span map.

    A verbatim run maps text characters one to one onto source characters.
    A non-verbatim run (an escape sequence in a doc string) maps its whole
    text onto its whole byte range.
    """
    text_start: int
    text_end: int
    byte_start: int
    byte_end: int
    verbatim: bool = True


@dataclass(frozen=True)
class MappedRange:
    """Result of mapping a unit text range back to the source file."""
    span: SourceSpan
    contiguous: bool
    verbatim: bool


@dataclass(frozen=True)
class SpanMap:
    """
    Monotonic map from offsets in a normalized text to source bytes.

    Runs are ordered and gapless in text offsets; byte ranges increase
    strictly but may skip marker bytes between runs.
    """
    buffer: SourceBuffer = field(compare=False, repr=False)
    runs: tuple

    def _char_to_byte_in_run(self, run: MappedRun, text_offset: int, text: str) -> int:
        if not run.verbatim:
            return run.byte_start if text_offset <= run.text_start else run.byte_end
        # within a verbatim run characters map one to one, bytes may not
        return run.byte_start + len(text[run.text_start:text_offset].encode('utf-8'))

    def map_range(self, start: int, end: int, text: str) -> MappedRange:
        """
        Map ``text[start:end]`` to a span in the original file.

        Args:
            start: Start offset in the normalized text
            end: End offset (exclusive)
            text: The normalized text the map belongs to

        Returns:
            MappedRange whose span covers every source byte of the range.
            ``contiguous`` is False when marker bytes lie inside the span;
            ``verbatim`` is False when an escape sequence is involved.
        """
        if not self.runs:
            raise ValueError("Cannot map a range of an empty unit")
        if start > end or start < 0 or end > self.runs[-1].text_end:
            raise ValueError(f"Range {start}..{end} outside mapped text")

        touched = [run for run in self.runs
                   if run.text_start < end and start < run.text_end]
        if not touched:
            # empty range; anchor it to the run it sits in
            anchor = next((run for run in self.runs if run.text_start <= start <= run.text_end),
                          self.runs[-1])
            offset = self._char_to_byte_in_run(anchor, start, text)
            return MappedRange(self.buffer.span(offset, offset), True, anchor.verbatim)

        first, last = touched[0], touched[-1]
        byte_start = self._char_to_byte_in_run(first, max(start, first.text_start), text)
        byte_end = self._char_to_byte_in_run(last, min(end, last.text_end), text)
        if not first.verbatim:
            byte_start = first.byte_start
        if not last.verbatim:
            byte_end = last.byte_end

        contiguous = all(a.byte_end == b.byte_start for a, b in zip(touched, touched[1:]))
        verbatim = all(run.verbatim for run in touched)
        return MappedRange(self.buffer.span(byte_start, byte_end), contiguous, verbatim)

    def source_bytes(self) -> bytes:
        """Concatenate the bytes addressed by every run, in order."""
        return b''.join(self.buffer.data[run.byte_start:run.byte_end] for run in self.runs)
