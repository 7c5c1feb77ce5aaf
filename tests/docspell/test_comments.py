"""
Tests for the Comment Aggregator
================================
Unit boundaries and normalization of documentation literals.
"""

from docspell.comments import aggregate
from docspell.extractor import extract_literals, LiteralForm
from docspell.span import SourceBuffer


def units(source: str, name: str = "lib.rs"):
    buffer = SourceBuffer.from_text(name, source)
    return aggregate(buffer, extract_literals(buffer))


class TestUnitBoundaries:
    """Tests for which literals merge into one unit."""

    def test_consecutive_lines_merge(self):
        found = units("/// First line.\n/// Second line.\nfn f() {}\n")
        assert len(found) == 1
        assert found[0].normalized_text == "First line.\nSecond line."
        assert len(found[0].literal_spans) == 2

    def test_blank_line_splits(self):
        """A blank line between two doc lines starts a new unit."""
        found = units("/// First.\n\n/// Second.\nfn f() {}\n")
        assert [u.normalized_text for u in found] == ["First.", "Second."]

    def test_form_change_splits(self):
        found = units('/// Line.\n#[doc = "Attr."]\nfn f() {}\n')
        assert [u.form for u in found] == [LiteralForm.LINE, LiteralForm.ATTRIBUTE]

    def test_inner_and_outer_split(self):
        found = units("//! Inner.\n/// Outer.\nfn f() {}\n")
        assert [u.inner for u in found] == [True, False]

    def test_blocks_never_merge(self):
        found = units("/** One. */\n/** Two. */\nfn f() {}\n")
        assert len(found) == 2

    def test_different_items_split(self):
        found = units("/// A.\nfn a() {}\n/// B.\nfn b() {}\n")
        assert [u.normalized_text for u in found] == ["A.", "B."]

    def test_consecutive_attributes_merge(self):
        found = units('#[doc = "One"]\n#[doc = "two."]\nfn f() {}\n')
        assert len(found) == 1
        assert found[0].normalized_text == "One\ntwo."

    def test_empty_docs_dropped(self):
        assert units("///\n///   \nfn f() {}\n") == []

    def test_owner_item_span(self):
        """All literals of a unit share the documented item."""
        source = "/// Adds.\n/// Really.\nfn add() {}\n"
        unit = units(source)[0]
        start = source.index("fn add")
        assert unit.owner_item_span.start_byte == start
        assert unit.owner_item_span.end_byte == len(source) - 1


class TestNormalization:
    """Tests for marker, decoration and indentation removal."""

    def test_block_decoration_stripped(self):
        source = "/**\n * Leading stars.\n * More text.\n */\nfn f() {}\n"
        unit = units(source)[0]
        assert unit.normalized_text.strip() == "Leading stars.\nMore text."

    def test_block_without_decoration(self):
        source = "/*!\n   Indented\n     deeper\n*/\n"
        unit = units(source)[0]
        assert unit.normalized_text.strip() == "Indented\n  deeper"

    def test_crlf(self):
        unit = units("/// Windows\r\n/// lines.\r\nfn f() {}\r\n")[0]
        assert unit.normalized_text == "Windows\nlines."

    def test_unindent_keeps_relative_indentation(self):
        unit = units("///   a\n///     b\nfn f() {}\n")[0]
        assert unit.normalized_text == "a\n  b"

    def test_escapes_decoded(self):
        unit = units('#[doc = "Tab\\there \\"quoted\\""]\nfn f() {}\n')[0]
        assert unit.normalized_text == 'Tab\there "quoted"'

    def test_markers_not_in_source_bytes(self):
        """The map only addresses content bytes."""
        unit = units("/// First line.\n/// Second line.\nfn f() {}\n")[0]
        assert b"///" not in unit.source_bytes()
        assert b"First line." in unit.source_bytes()

    def test_markdown_unit_is_whole_file(self):
        source = "# Title\n\nSome text.\n"
        found = units(source, "README.md")
        assert len(found) == 1
        assert found[0].normalized_text == source
        assert found[0].source_bytes() == source.encode('utf-8')

    def test_span_map_runs_cover_text(self):
        """Every verbatim run addresses exactly the bytes of its text."""
        unit = units("/// First line.\n/// Second line.\nfn f() {}\n")[0]
        runs = unit.text_to_span_map
        assert runs[0].text_start == 0
        assert runs[-1].text_end == len(unit.normalized_text)
        for run in runs:
            assert run.verbatim
            assert (unit.buffer.data[run.byte_start:run.byte_end].decode('utf-8')
                    == unit.normalized_text[run.text_start:run.text_end])
