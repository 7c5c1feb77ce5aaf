"""
Comment Aggregator
==================
Merges adjacent documentation literals into documentation units.

Two literals belong to the same unit when they have the same form and
inner/outer flavour, document the same item, and are separated only by
whitespace containing exactly one newline. A blank line, any other token,
or a change of form starts a new unit. Block comments and markdown files
are always units of their own.

Normalization removes comment markers, block comment ``*`` decoration,
carriage returns and the common indentation of the unit, while keeping a
byte-accurate map back to the source.
"""

from dataclasses import dataclass, field
from typing import List, Tuple, Optional

from .extractor import RawLiteral, LiteralForm
from .span import SourceBuffer, SourceSpan, MappedRun, MappedRange, SpanMap

__version__ = "1.0.0"


@dataclass(frozen=True)
class DocumentationUnit:
    """
    One logical block of prose attached to a single code item.

    ``span_map`` is the single source of truth for where each character of
    ``normalized_text`` lives in the original file.
    """
    file_id: str
    form: LiteralForm
    inner: bool
    owner_item_span: SourceSpan
    literal_spans: Tuple[SourceSpan, ...]
    normalized_text: str
    span_map: SpanMap = field(repr=False)

    @property
    def text_to_span_map(self) -> Tuple[MappedRun, ...]:
        return self.span_map.runs

    @property
    def buffer(self) -> SourceBuffer:
        return self.span_map.buffer

    def map_range(self, start: int, end: int) -> MappedRange:
        """Map a range of ``normalized_text`` back to the original file."""
        return self.span_map.map_range(start, end, self.normalized_text)

    def source_bytes(self) -> bytes:
        """Bytes addressed by the map, concatenated in order."""
        return self.span_map.source_bytes()


# (character, source char start, source char end, verbatim)
_Char = Tuple[str, int, int, bool]

_SIMPLE_ESCAPES = {'n': '\n', 't': '\t', 'r': '\r', '0': '\0',
                   '\\': '\\', '"': '"', "'": "'"}


def _literal_chars(text: str, literal: RawLiteral) -> List[_Char]:
    """Per-character view of a literal's content with source positions."""
    start, end = literal.content_start, literal.content_end
    if literal.form is not LiteralForm.ATTRIBUTE or literal.raw:
        return [(text[i], i, i + 1, True) for i in range(start, end)]

    chars: List[_Char] = []
    i = start
    while i < end:
        ch = text[i]
        if ch != '\\' or i + 1 >= end:
            chars.append((ch, i, i + 1, True))
            i += 1
            continue
        code = text[i + 1]
        if code in _SIMPLE_ESCAPES:
            chars.append((_SIMPLE_ESCAPES[code], i, i + 2, False))
            i += 2
        elif code == 'x' and i + 4 <= end:
            chars.append((chr(int(text[i + 2:i + 4], 16)), i, i + 4, False))
            i += 4
        elif code == 'u' and text.startswith('{', i + 2):
            close = text.find('}', i + 3, end)
            if close < 0:
                chars.append((ch, i, i + 1, True))
                i += 1
                continue
            digits = text[i + 3:close].replace('_', '')
            chars.append((chr(int(digits, 16)), i, close + 1, False))
            i = close + 1
        elif code == '\n' or (code == '\r' and text.startswith('\n', i + 2)):
            # line continuation swallows the newline and leading whitespace
            i += 2 if code == '\n' else 3
            while i < end and text[i] in ' \t\r\n':
                i += 1
        else:
            chars.append((ch, i, i + 1, True))
            i += 1
    return chars


def _split_lines(chars: List[_Char]) -> Tuple[List[List[_Char]], List[_Char]]:
    """Split at newline characters; returns (lines, newline separators)."""
    lines: List[List[_Char]] = [[]]
    newlines: List[_Char] = []
    for entry in chars:
        if entry[0] == '\n':
            newlines.append(entry)
            lines.append([])
        else:
            lines[-1].append(entry)
    return lines, newlines


def _is_blank(line: List[_Char]) -> bool:
    return all(entry[0].isspace() for entry in line)


def _strip_block_decoration(lines: List[List[_Char]]) -> List[List[_Char]]:
    """Remove leading `` * `` decoration when every content line carries it."""
    candidates = [line for line in lines[1:] if not _is_blank(line)]
    if not candidates:
        return lines

    def star_position(line):
        for index, entry in enumerate(line):
            if entry[0] == '*':
                return index
            if not entry[0].isspace():
                return None
        return None

    if any(star_position(line) is None for line in candidates):
        return lines

    stripped = [lines[0]]
    for line in lines[1:]:
        position = star_position(line)
        stripped.append(line[position + 1:] if position is not None else line)
    return stripped


def _unindent(lines: List[List[_Char]]) -> List[List[_Char]]:
    """Remove the common leading whitespace of the non-blank lines."""
    indents = []
    for line in lines:
        if _is_blank(line):
            continue
        count = 0
        for entry in line:
            if entry[0] in ' \t':
                count += 1
            else:
                break
        indents.append(count)
    if not indents:
        return [[] for _ in lines]
    indent = min(indents)

    result = []
    for line in lines:
        if _is_blank(line):
            result.append([])
        else:
            result.append(line[indent:])
    return result


def _compress(buffer: SourceBuffer, chars: List[_Char]) -> Tuple[str, Tuple[MappedRun, ...]]:
    """Build the normalized text and the run map from per-character entries."""
    runs: List[MappedRun] = []
    text_parts: List[str] = []
    offset = 0
    run_start: Optional[int] = None
    src_start = src_end = 0

    def flush():
        if run_start is not None:
            runs.append(MappedRun(run_start, offset, buffer.byte_offset(src_start),
                                  buffer.byte_offset(src_end), True))

    for ch, start, end, verbatim in chars:
        if verbatim and run_start is not None and start == src_end:
            src_end = end
        else:
            flush()
            run_start = None
            if verbatim:
                run_start, src_start, src_end = offset, start, end
            else:
                runs.append(MappedRun(offset, offset + 1, buffer.byte_offset(start),
                                      buffer.byte_offset(end), False))
        text_parts.append(ch)
        offset += 1
    flush()
    return ''.join(text_parts), tuple(runs)


def _can_merge(text: str, previous: RawLiteral, current: RawLiteral) -> bool:
    if previous.form is not current.form or previous.inner != current.inner:
        return False
    if current.form in (LiteralForm.BLOCK, LiteralForm.MARKDOWN):
        return False
    if (previous.item_start, previous.item_end) != (current.item_start, current.item_end):
        return False
    gap = text[previous.end:current.start]
    return gap.strip() == '' and gap.count('\n') == 1


def group_literals(text: str, literals: List[RawLiteral]) -> List[List[RawLiteral]]:
    """Group literals into the sets that form one documentation unit each."""
    groups: List[List[RawLiteral]] = []
    for literal in literals:
        if groups and _can_merge(text, groups[-1][-1], literal):
            groups[-1].append(literal)
        else:
            groups.append([literal])
    return groups


def build_unit(buffer: SourceBuffer, group: List[RawLiteral]) -> Optional[DocumentationUnit]:
    """Normalize one literal group; returns None for units without content."""
    text = buffer.text
    first = group[0]

    chars: List[_Char] = []
    for index, literal in enumerate(group):
        if index:
            previous = group[index - 1]
            newline = text.index('\n', previous.end, literal.start)
            chars.append(('\n', newline, newline + 1, True))
        chars.extend(_literal_chars(text, literal))

    if first.form is not LiteralForm.MARKDOWN:
        lines, newlines = _split_lines(chars)
        lines = [line[:-1] if line and line[-1][0] == '\r' else line for line in lines]
        if first.form is LiteralForm.BLOCK:
            lines = _strip_block_decoration(lines)
        lines = _unindent(lines)
        chars = list(lines[0])
        for newline, line in zip(newlines, lines[1:]):
            chars.append(newline)
            chars.extend(line)

    normalized, runs = _compress(buffer, chars)
    if not normalized.strip():
        return None

    return DocumentationUnit(
        file_id=buffer.file_id,
        form=first.form,
        inner=first.inner,
        owner_item_span=first.item_span(buffer),
        literal_spans=tuple(literal.span(buffer) for literal in group),
        normalized_text=normalized,
        span_map=SpanMap(buffer=buffer, runs=runs),
    )


def aggregate(buffer: SourceBuffer, literals: List[RawLiteral]) -> List[DocumentationUnit]:
    """
    Merge a file's literals into documentation units, in declaration order.

    Args:
        buffer: The file the literals were extracted from
        literals: Output of ``extract_literals`` for that buffer

    Returns:
        Units with non-empty normalized text
    """
    units = []
    for group in group_literals(buffer.text, literals):
        unit = build_unit(buffer, group)
        if unit is not None:
            units.append(unit)
    return units
