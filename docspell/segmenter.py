"""
Markdown Segmenter
==================
Classifies the normalized text of a documentation unit into prose, code,
link and heading segments using markdown-it-py.

Block structure (fences, indented code, HTML blocks, headings) comes from
the markdown-it token maps. Inline structure (code spans, link targets,
autolinks, bare URLs, inline HTML) is found by scanning the remaining
prose regions, because markdown-it inline tokens carry no offsets.

The result is always a gapless, non-overlapping partition of the text.
"""

import re
import threading
from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple, Dict, Any

from markdown_it import MarkdownIt

from .config_logging import SegmentationError

__version__ = "1.0.0"


class SegmentKind(Enum):
    PROSE = "prose"
    CODE = "code"
    LINK = "link"
    HEADING = "heading"

    @property
    def is_checkable(self) -> bool:
        return self in (SegmentKind.PROSE, SegmentKind.HEADING)


@dataclass(frozen=True)
class Segment:
    """A classified slice ``text[start:end]`` of a unit's normalized text."""
    kind: SegmentKind
    start: int
    end: int
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {'kind': self.kind.value, 'start': self.start, 'end': self.end}


_CODE_BLOCK_TOKENS = {'fence', 'code_block', 'html_block'}
_REFERENCE_DEFINITION_RE = re.compile(r'^ {0,3}\[[^\]\n]+\]:[ \t]*\S+[^\n]*', re.MULTILINE)
_AUTOLINK_RE = re.compile(r'<(?:[A-Za-z][A-Za-z0-9+.\-]{1,31}:[^\s<>]*|[^\s<>@]+@[^\s<>@]+)>')
_HTML_TAG_RE = re.compile(r'<!--.*?-->|</?[A-Za-z][A-Za-z0-9\-]*(?:\s[^<>]*)?/?>', re.DOTALL)
_BARE_URL_RE = re.compile(r'(?:https?|ftp)://[^\s<>()\[\]`]+|www\.[^\s<>()\[\]`]+')
_INTRA_DOC_LINK_RE = re.compile(r'\[([^\]\s]*(?:::|\(\))[^\]\s]*)\](?![(\[:])')
_URL_TRAILING = '.,;:!?\'"*_'

_local = threading.local()


def _parser() -> MarkdownIt:
    """One parser per thread; parse state is not shared across threads."""
    parser = getattr(_local, 'parser', None)
    if parser is None:
        parser = MarkdownIt("commonmark")
        parser.enable("table")
        _local.parser = parser
    return parser


def _line_starts(text: str) -> List[int]:
    starts = [0]
    for index, ch in enumerate(text):
        if ch == '\n':
            starts.append(index + 1)
    return starts


def _mark(kinds: List[SegmentKind], start: int, end: int, kind: SegmentKind):
    for index in range(start, end):
        kinds[index] = kind


def _classify_blocks(text: str, kinds: List[SegmentKind]):
    starts = _line_starts(text)

    def line_offset(line: int) -> int:
        return starts[line] if line < len(starts) else len(text)

    for token in _parser().parse(text):
        if not token.map:
            continue
        first, last = token.map
        if token.type in _CODE_BLOCK_TOKENS:
            _mark(kinds, line_offset(first), line_offset(last), SegmentKind.CODE)
        elif token.type == 'heading_open':
            _mark(kinds, line_offset(first), line_offset(last), SegmentKind.HEADING)

    for match in _REFERENCE_DEFINITION_RE.finditer(text):
        if kinds[match.start()] is SegmentKind.PROSE:
            _mark(kinds, match.start(), match.end(), SegmentKind.LINK)


def _find_closing_backticks(s: str, start: int, count: int) -> int:
    """Index of a backtick run of exactly ``count`` at or after ``start``; -1 if none."""
    i = start
    while True:
        i = s.find('`' * count, i)
        if i < 0:
            return -1
        end = i + count
        if end < len(s) and s[end] == '`':
            # longer run; skip it entirely
            while end < len(s) and s[end] == '`':
                end += 1
            i = end
            continue
        return i


def _find_closing_paren(s: str, start: int) -> int:
    """Index of the ')' closing the '(' at ``start``; -1 if none."""
    depth = 0
    i = start
    while i < len(s):
        ch = s[i]
        if ch == '\\':
            i += 2
            continue
        if ch == '\n' and s.startswith('\n', i + 1):
            return -1
        if ch == '(':
            depth += 1
        elif ch == ')':
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def scan_inline(s: str) -> List[Tuple[int, int, SegmentKind]]:
    """
    Find inline code, HTML and link targets in a prose region.

    Returns:
        (start, end, kind) ranges relative to ``s``, non-overlapping, ordered
    """
    found: List[Tuple[int, int, SegmentKind]] = []
    i = 0
    length = len(s)
    while i < length:
        ch = s[i]
        if ch == '\\':
            i += 2
            continue

        if ch == '`':
            run = i
            while run < length and s[run] == '`':
                run += 1
            count = run - i
            close = _find_closing_backticks(s, run, count)
            if close >= 0:
                found.append((i, close + count, SegmentKind.CODE))
                i = close + count
            else:
                i = run
            continue

        if ch == '<':
            match = _AUTOLINK_RE.match(s, i)
            if match:
                found.append((i, match.end(), SegmentKind.LINK))
                i = match.end()
                continue
            match = _HTML_TAG_RE.match(s, i)
            if match:
                found.append((i, match.end(), SegmentKind.CODE))
                i = match.end()
                continue

        if ch == ']' and i + 1 < length:
            if s[i + 1] == '(':
                close = _find_closing_paren(s, i + 1)
                if close >= 0:
                    found.append((i, close + 1, SegmentKind.LINK))
                    i = close + 1
                    continue
            elif s[i + 1] == '[':
                close = s.find(']', i + 2)
                if close >= 0 and '\n' not in s[i + 2:close]:
                    found.append((i, close + 1, SegmentKind.LINK))
                    i = close + 1
                    continue

        if ch == '[':
            match = _INTRA_DOC_LINK_RE.match(s, i)
            if match:
                found.append((i, match.end(), SegmentKind.LINK))
                i = match.end()
                continue

        if (ch in 'hfw') and (i == 0 or not s[i - 1].isalnum()):
            match = _BARE_URL_RE.match(s, i)
            if match:
                end = match.end()
                while end > i and s[end - 1] in _URL_TRAILING:
                    end -= 1
                found.append((i, end, SegmentKind.LINK))
                i = end
                continue

        i += 1
    return found


def _classify_inline(text: str, kinds: List[SegmentKind]):
    index = 0
    length = len(text)
    while index < length:
        if not kinds[index].is_checkable:
            index += 1
            continue
        # a maximal run of prose; headings are scanned line by line with it
        end = index
        while end < length and kinds[end].is_checkable:
            end += 1
        for start, stop, kind in scan_inline(text[index:end]):
            _mark(kinds, index + start, index + stop, kind)
        index = end


def _verify_partition(text: str, segments: List[Segment]):
    position = 0
    for segment in segments:
        if segment.start != position or segment.end <= segment.start:
            raise SegmentationError(
                "Segments do not partition the text",
                position=position, segment=segment.to_dict(),
            )
        position = segment.end
    if position != len(text):
        raise SegmentationError("Segments do not cover the text",
                                covered=position, length=len(text))


def segment(text: str) -> List[Segment]:
    """
    Partition ``text`` into classified segments.

    Args:
        text: Normalized text of a documentation unit

    Returns:
        Contiguous, exhaustive list of segments (empty for empty text)

    Raises:
        SegmentationError: If the partition is not total (internal error)
    """
    if not text:
        return []

    kinds = [SegmentKind.PROSE] * len(text)
    _classify_blocks(text, kinds)
    _classify_inline(text, kinds)

    segments: List[Segment] = []
    start = 0
    for index in range(1, len(text) + 1):
        if index == len(text) or kinds[index] is not kinds[start]:
            segments.append(Segment(kinds[start], start, index, text[start:index]))
            start = index

    _verify_partition(text, segments)
    return segments
