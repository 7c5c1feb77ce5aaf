"""
Literal Extractor
=================
Finds documentation literals in Rust sources and markdown files.

The Rust side is a small lexer that produces a flat token stream with
matched delimiters (a token tree in all but name). Doc comments are
recognised while lexing; ``#[doc = "..."]`` attributes are recognised on
the token stream. Each literal records its exact character range and the
range of the item it documents.

Markdown files become a single literal covering the whole file.
"""

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Dict, Optional, Tuple

from .config_logging import ParseError, get_logger
from .span import SourceBuffer, SourceSpan

__version__ = "1.0.0"

_logger = get_logger('extractor')

RUST_SUFFIXES = ('.rs',)
MARKDOWN_SUFFIXES = ('.md', '.markdown')


class LiteralForm(Enum):
    """Syntactic form of a documentation literal."""
    LINE = "line"            # /// or //!
    BLOCK = "block"          # /** */ or /*! */
    ATTRIBUTE = "attribute"  # #[doc = "..."] or #![doc = "..."]
    MARKDOWN = "markdown"    # a whole markdown file


class TokenKind(Enum):
    IDENT = "ident"
    LIFETIME = "lifetime"
    LITERAL = "literal"
    PUNCT = "punct"
    OPEN = "open"
    CLOSE = "close"
    DOC = "doc"


@dataclass
class Token:
    """A lexed token; ``start``/``end`` are indices into the decoded text."""
    kind: TokenKind
    start: int
    end: int
    text: str
    literal_index: int = -1  # index into the literal list for DOC tokens


@dataclass(frozen=True)
class RawLiteral:
    """
    One documentation literal as found in the source.

    Attributes:
        form: Syntactic form
        inner: True for //!, /*! and #![doc] (documents the enclosing item)
        start, end: Character range of the whole literal, markers included
        content_start, content_end: Character range of the literal content
        raw: True for raw string literals (no escape processing)
        item_start, item_end: Character range of the documented item
    """
    form: LiteralForm
    inner: bool
    start: int
    end: int
    content_start: int
    content_end: int
    raw: bool = True
    item_start: int = 0
    item_end: int = 0

    def span(self, buffer: SourceBuffer) -> SourceSpan:
        return buffer.char_span(self.start, self.end)

    def item_span(self, buffer: SourceBuffer) -> SourceSpan:
        return buffer.char_span(self.item_start, self.item_end)


_IDENT_RE = re.compile(r'[^\W\d]\w*')
_NUMBER_RE = re.compile(
    r'0[xX][0-9a-fA-F_]+\w*'
    r'|0[oO][0-7_]+\w*'
    r'|0[bB][01_]+\w*'
    r'|\d[\d_]*(?:\.\d[\d_]*)?(?:[eE][+-]?\d[\d_]*)?\w*'
)
_RAW_STRING_RE = re.compile(r'(?:b|c)?r(#*)"')
_OPENERS = {'(': ')', '[': ']', '{': '}'}
_CLOSERS = {')': '(', ']': '[', '}': '{'}

# Leading tokens that mark a proper item (terminated by ';' or a brace block)
ITEM_KEYWORDS = {
    'fn', 'struct', 'enum', 'union', 'trait', 'impl', 'mod', 'type', 'const',
    'static', 'use', 'extern', 'macro_rules', 'async', 'unsafe', 'default',
}


class RustLexer:
    """
    Tokenizes Rust source text.

    Produces ``tokens`` (comments other than doc comments are dropped),
    ``literals`` (doc comments found while lexing, in source order),
    ``matching`` (open token index <-> close token index) and, per doc
    token, the index of its innermost enclosing open delimiter.
    """

    def __init__(self, text: str, path: str = "<memory>"):
        self.text = text
        self.path = path
        self.tokens: List[Token] = []
        self.comment_literals: List[RawLiteral] = []
        self.matching: Dict[int, int] = {}
        self.enclosing: Dict[int, Optional[int]] = {}
        self._stack: List[int] = []

    def _error(self, message: str, position: int) -> ParseError:
        line = self.text.count('\n', 0, position) + 1
        return ParseError(f"{self.path}:{line}: {message}", path=self.path, line=line)

    def lex(self) -> 'RustLexer':
        text = self.text
        length = len(text)
        i = 0
        # a shebang line is not a token
        if text.startswith('#!') and not text.startswith('#!['):
            newline = text.find('\n')
            i = length if newline < 0 else newline

        while i < length:
            ch = text[i]
            if ch.isspace():
                i += 1
            elif text.startswith('//', i):
                i = self._line_comment(i)
            elif text.startswith('/*', i):
                i = self._block_comment(i)
            elif ch == '"':
                i = self._string(i, i + 1)
            elif ch == "'":
                i = self._char_or_lifetime(i)
            elif ch in 'bcr' and self._starts_literal(i):
                i = self._prefixed_literal(i)
            elif ch.isdigit():
                match = _NUMBER_RE.match(text, i)
                self._push(TokenKind.LITERAL, i, match.end())
                i = match.end()
            elif ch == '_' or ch.isalpha():
                match = _IDENT_RE.match(text, i)
                end = match.end() if match else i + 1
                self._push(TokenKind.IDENT, i, end)
                i = end
            elif ch in _OPENERS:
                self._stack.append(len(self.tokens))
                self._push(TokenKind.OPEN, i, i + 1)
                i += 1
            elif ch in _CLOSERS:
                if not self._stack:
                    raise self._error(f"unexpected closing delimiter '{ch}'", i)
                open_index = self._stack.pop()
                if self.tokens[open_index].text != _CLOSERS[ch]:
                    raise self._error(
                        f"mismatched closing delimiter '{ch}' "
                        f"for '{self.tokens[open_index].text}'", i)
                self.matching[open_index] = len(self.tokens)
                self.matching[len(self.tokens)] = open_index
                self._push(TokenKind.CLOSE, i, i + 1)
                i += 1
            else:
                self._push(TokenKind.PUNCT, i, i + 1)
                i += 1

        if self._stack:
            opener = self.tokens[self._stack[-1]]
            raise self._error(f"unclosed delimiter '{opener.text}'", opener.start)
        return self

    def _push(self, kind: TokenKind, start: int, end: int, literal_index: int = -1):
        self.tokens.append(Token(kind, start, end, self.text[start:end], literal_index))

    def _push_doc(self, literal: RawLiteral):
        self.enclosing[len(self.tokens)] = self._stack[-1] if self._stack else None
        self._push(TokenKind.DOC, literal.start, literal.end, len(self.comment_literals))
        self.comment_literals.append(literal)

    def _line_comment(self, i: int) -> int:
        text = self.text
        newline = text.find('\n', i)
        end = len(text) if newline < 0 else newline
        content_end = end - 1 if end > i and text[end - 1] == '\r' else end
        if text.startswith('///', i) and not text.startswith('////', i):
            self._push_doc(RawLiteral(LiteralForm.LINE, False, i, end, i + 3, content_end))
        elif text.startswith('//!', i):
            self._push_doc(RawLiteral(LiteralForm.LINE, True, i, end, i + 3, content_end))
        return end

    def _block_comment(self, i: int) -> int:
        text = self.text
        depth = 0
        j = i
        while j < len(text):
            if text.startswith('/*', j):
                depth += 1
                j += 2
            elif text.startswith('*/', j):
                depth -= 1
                j += 2
                if depth == 0:
                    break
            else:
                j += 1
        if depth != 0:
            raise self._error("unterminated block comment", i)

        end = j
        if (text.startswith('/**', i) and not text.startswith('/***', i)
                and not text.startswith('/**/', i)):
            self._push_doc(RawLiteral(LiteralForm.BLOCK, False, i, end, i + 3, end - 2))
        elif text.startswith('/*!', i):
            self._push_doc(RawLiteral(LiteralForm.BLOCK, True, i, end, i + 3, end - 2))
        return end

    def _starts_literal(self, i: int) -> bool:
        text = self.text
        if _RAW_STRING_RE.match(text, i):
            return True
        return text.startswith(('b"', "b'", 'c"'), i)

    def _prefixed_literal(self, i: int) -> int:
        text = self.text
        raw = _RAW_STRING_RE.match(text, i)
        if raw:
            hashes = raw.group(1)
            terminator = '"' + hashes
            close = text.find(terminator, raw.end())
            if close < 0:
                raise self._error("unterminated raw string", i)
            end = close + len(terminator)
            self._push(TokenKind.LITERAL, i, end)
            return end
        if text.startswith("b'", i):
            return self._char_or_lifetime(i + 1, token_start=i)
        return self._string(i, i + 2)

    def _string(self, start: int, j: int) -> int:
        text = self.text
        while j < len(text):
            ch = text[j]
            if ch == '\\':
                j += 2
            elif ch == '"':
                self._push(TokenKind.LITERAL, start, j + 1)
                return j + 1
            else:
                j += 1
        raise self._error("unterminated string literal", start)

    def _char_or_lifetime(self, i: int, token_start: Optional[int] = None) -> int:
        text = self.text
        start = i if token_start is None else token_start
        if text.startswith("'\\", i):
            close = text.find("'", i + 3)
            if close < 0:
                raise self._error("unterminated character literal", i)
            self._push(TokenKind.LITERAL, start, close + 1)
            return close + 1
        if i + 2 < len(text) and text[i + 2] == "'":
            self._push(TokenKind.LITERAL, start, i + 3)
            return i + 3
        match = _IDENT_RE.match(text, i + 1)
        if match is None:
            raise self._error("invalid character literal", i)
        self._push(TokenKind.LIFETIME, start, match.end())
        return match.end()


class RustDocExtractor:
    """Extracts documentation literals from one Rust source file."""

    def __init__(self, buffer: SourceBuffer):
        self.buffer = buffer
        self.lexer = RustLexer(buffer.text, buffer.file_id)

    def extract(self) -> List[RawLiteral]:
        lexer = self.lexer.lex()
        tokens = lexer.tokens

        found: List[Tuple[int, int, RawLiteral]] = []
        index = 0
        while index < len(tokens):
            token = tokens[index]
            if token.kind is TokenKind.DOC:
                found.append((index, index, lexer.comment_literals[token.literal_index]))
                index += 1
                continue
            attribute = self._doc_attribute(index)
            if attribute is not None:
                last_index, literal = attribute
                found.append((index, last_index, literal))
                index = last_index + 1
                continue
            index += 1

        literals = []
        for first_index, last_index, literal in found:
            if literal.inner:
                item_start, item_end = self._enclosing_span(first_index)
            else:
                item_start, item_end = self._item_span(last_index + 1, literal)
            literals.append(RawLiteral(
                form=literal.form, inner=literal.inner,
                start=literal.start, end=literal.end,
                content_start=literal.content_start, content_end=literal.content_end,
                raw=literal.raw, item_start=item_start, item_end=item_end,
            ))

        _logger.debug("Extracted doc literals", path=self.buffer.file_id, count=len(literals))
        return literals

    def _doc_attribute(self, index: int) -> Optional[Tuple[int, RawLiteral]]:
        """Match ``# [!] [ doc = "..." ]`` starting at ``index``."""
        tokens = self.lexer.tokens
        if tokens[index].text != '#' or tokens[index].kind is not TokenKind.PUNCT:
            return None
        cursor = index + 1
        inner = False
        if cursor < len(tokens) and tokens[cursor].text == '!':
            inner = True
            cursor += 1
        if cursor >= len(tokens) or tokens[cursor].text != '[':
            return None
        close = self.lexer.matching.get(cursor)
        body = tokens[cursor + 1:close]
        if (len(body) != 3 or body[0].text != 'doc' or body[1].text != '='
                or body[2].kind is not TokenKind.LITERAL):
            return None

        literal = body[2]
        raw = _RAW_STRING_RE.match(literal.text)
        if raw:
            if raw.group(0).startswith(('b', 'c')):
                return None
            quote = raw.end()
            content_start = literal.start + quote
            content_end = literal.end - 1 - len(raw.group(1))
            is_raw = True
        elif literal.text.startswith('"'):
            content_start, content_end = literal.start + 1, literal.end - 1
            is_raw = False
        else:
            return None

        end = tokens[close].end
        return close, RawLiteral(
            LiteralForm.ATTRIBUTE, inner, tokens[index].start, end,
            content_start, content_end, raw=is_raw,
        )

    def _enclosing_span(self, doc_index: int) -> Tuple[int, int]:
        tokens = self.lexer.tokens
        open_index = self.lexer.enclosing.get(doc_index)
        if open_index is None:
            # attribute tokens are not DOC tokens; find the innermost open group
            open_index = self._innermost_open(doc_index)
        if open_index is None:
            return 0, len(self.buffer.text)
        close_index = self.lexer.matching[open_index]
        return tokens[open_index].start, tokens[close_index].end

    def _innermost_open(self, index: int) -> Optional[int]:
        depth = 0
        for cursor in range(index - 1, -1, -1):
            kind = self.lexer.tokens[cursor].kind
            if kind is TokenKind.CLOSE:
                depth += 1
            elif kind is TokenKind.OPEN:
                if depth == 0:
                    return cursor
                depth -= 1
        return None

    def _skip_attributes(self, index: int) -> int:
        """Skip doc tokens and ``#[...]`` attributes preceding an item."""
        tokens = self.lexer.tokens
        while index < len(tokens):
            token = tokens[index]
            if token.kind is TokenKind.DOC:
                index += 1
            elif (token.text == '#' and index + 1 < len(tokens)
                  and tokens[index + 1].text == '['):
                index = self.lexer.matching[index + 1] + 1
            else:
                break
        return index

    def _item_span(self, index: int, literal: RawLiteral) -> Tuple[int, int]:
        """
        Span of the item following an outer doc literal.

        Items end at ';' or at the brace block that closes them; fields and
        enum variants end before the next ',' at the same nesting level.
        """
        tokens = self.lexer.tokens
        index = self._skip_attributes(index)
        if index >= len(tokens) or tokens[index].kind is TokenKind.CLOSE:
            # dangling documentation at the end of a block or file
            return literal.start, literal.end

        head = []
        for token in tokens[index:index + 8]:
            if token.text in (':', '=', ',', ';') or token.text == '{':
                break
            if token.kind is TokenKind.IDENT:
                head.append(token.text)
        is_item = any(word in ITEM_KEYWORDS for word in head)
        start = tokens[index].start
        end = tokens[index].end
        angle_depth = 0
        cursor = index
        while cursor < len(tokens):
            token = tokens[cursor]
            if token.kind is TokenKind.OPEN:
                close = self.lexer.matching[cursor]
                end = tokens[close].end
                if is_item and token.text == '{':
                    break
                cursor = close + 1
                continue
            if token.kind is TokenKind.CLOSE:
                break
            if token.text == ';':
                end = token.end
                break
            if not is_item:
                if token.text == '<':
                    angle_depth += 1
                elif token.text == '>' and not (cursor > 0 and tokens[cursor - 1].text in '-='
                                                 and tokens[cursor - 1].end == token.start):
                    angle_depth = max(0, angle_depth - 1)
                elif token.text == ',' and angle_depth == 0:
                    break
            end = token.end
            cursor += 1
        return start, end


def extract_markdown(buffer: SourceBuffer) -> List[RawLiteral]:
    """A markdown file is one literal spanning the whole file."""
    length = len(buffer.text)
    if not buffer.text.strip():
        return []
    return [RawLiteral(LiteralForm.MARKDOWN, True, 0, length, 0, length,
                       raw=True, item_start=0, item_end=length)]


def extract_literals(buffer: SourceBuffer) -> List[RawLiteral]:
    """
    Extract all documentation literals of a file, in declaration order.

    Raises:
        ParseError: The file cannot be lexed or has an unsupported type
    """
    suffix = Path(buffer.file_id).suffix.lower()
    if suffix in RUST_SUFFIXES:
        return RustDocExtractor(buffer).extract()
    if suffix in MARKDOWN_SUFFIXES:
        return extract_markdown(buffer)
    raise ParseError(f"Unsupported file type: {buffer.file_id}", path=buffer.file_id)
