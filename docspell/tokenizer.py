"""
Tokenizer
=========
Turns the prose segments of a documentation unit into words and sentences.

Only PROSE and HEADING segments contribute. Code and link characters are
blanked with spaces in the sentence view so every offset still indexes the
unit's normalized text.
"""

import re
from dataclasses import dataclass
from typing import Iterator, List, Optional

from .comments import DocumentationUnit
from .config import TokenizerConfig
from .segmenter import Segment, SegmentKind

__version__ = "1.0.0"

WORD_RE = re.compile(r"\w+(?:['’\-]\w+)*")
SENTENCE_END_RE = re.compile(r"[.!?]+(?=\s|$)")
BLANK_LINE_RE = re.compile(r"\n[ \t]*\n\s*")
SUBWORD_RE = re.compile(r"[A-Z]?[a-z]+|[A-Z]+(?![a-z])|[0-9]+")


@dataclass(frozen=True)
class Sentence:
    """A sentence of prose; ``text`` is aligned with ``text[start:end]`` of the unit."""
    start: int
    end: int
    text: str


@dataclass(frozen=True)
class Token:
    """A checkable word at ``[start, end)`` of the unit's normalized text."""
    word: str
    start: int
    end: int
    sentence: int  # index into TokenStream.sentences()


def is_identifier(word: str) -> bool:
    """snake_case, camelCase and PascalCase-with-humps words."""
    if '_' in word:
        return True
    return bool(re.search(r'[a-z][A-Z]', word))


def _masked_text(text: str, segments: List[Segment]) -> str:
    chars = list(text)
    for segment in segments:
        if segment.kind.is_checkable:
            continue
        for index in range(segment.start, segment.end):
            if chars[index] != '\n':
                chars[index] = ' '
    return ''.join(chars)


def _regions(segments: List[Segment]) -> List[tuple]:
    """Ranges in which sentences may span; headings stand alone."""
    regions = []
    start = None
    for segment in segments:
        if segment.kind is SegmentKind.HEADING:
            if start is not None:
                regions.append((start, segment.start))
                start = None
            regions.append((segment.start, segment.end))
        elif start is None:
            start = segment.start
    if start is not None:
        regions.append((start, segments[-1].end))
    return regions


def split_sentences(masked: str, segments: List[Segment]) -> List[Sentence]:
    """Split the masked text into sentences, in order."""
    sentences = []

    def emit(start: int, end: int):
        piece = masked[start:end]
        stripped = piece.strip()
        if not stripped:
            return
        lead = len(piece) - len(piece.lstrip())
        start += lead
        end = start + len(stripped)
        sentences.append(Sentence(start, end, masked[start:end]))

    for region_start, region_end in _regions(segments):
        region = masked[region_start:region_end]
        cuts = set()
        for match in SENTENCE_END_RE.finditer(region):
            cuts.add(match.end())
        for match in BLANK_LINE_RE.finditer(region):
            cuts.add(match.start())
        position = 0
        for cut in sorted(cuts):
            emit(region_start + position, region_start + cut)
            position = cut
        emit(region_start + position, region_end)
    return sentences


def _split_identifier(word: str, start: int):
    offset = 0
    for part in word.split('_'):
        if part:
            for match in SUBWORD_RE.finditer(part):
                yield match.group(), start + offset + match.start(), start + offset + match.end()
        offset += len(part) + 1


class TokenStream:
    """
    Lazy, restartable stream of tokens of one unit.

    Every iteration re-scans the text, so the stream can be consumed by
    several backends independently.
    """

    def __init__(self, text: str, segments: List[Segment],
                 config: Optional[TokenizerConfig] = None):
        self.text = text
        self.segments = segments
        self.config = config or TokenizerConfig()
        self._masked = _masked_text(text, segments)

    def sentences(self) -> List[Sentence]:
        return split_sentences(self._masked, self.segments)

    def __iter__(self) -> Iterator[Token]:
        min_length = self.config.min_word_length
        for index, sentence in enumerate(self.sentences()):
            for match in WORD_RE.finditer(sentence.text):
                word = match.group()
                start = sentence.start + match.start()
                stripped = word.strip('_')
                if not stripped:
                    continue
                start += len(word) - len(word.lstrip('_'))
                word = stripped

                if self.config.split_identifiers and is_identifier(word):
                    pieces = list(_split_identifier(word, start))
                else:
                    pieces = [(word, start, start + len(word))]

                for piece, piece_start, piece_end in pieces:
                    if len(piece) < min_length:
                        continue
                    if not any(ch.isalpha() for ch in piece):
                        continue
                    yield Token(piece, piece_start, piece_end, index)

    def words(self) -> List[str]:
        return [token.word for token in self]


def tokenize(unit: DocumentationUnit, segments: List[Segment],
             config: Optional[TokenizerConfig] = None) -> TokenStream:
    """Token stream of the prose of ``unit`` given its segmentation."""
    return TokenStream(unit.normalized_text, segments, config)
