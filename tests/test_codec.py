"""Tests for the markdown document codec."""

from __future__ import annotations

from datetime import datetime

import frontmatter
import pytest

from w2m.categories import codec
from w2m.categories.codec import CategorizedMessage, decode, encode, render_header
from w2m.categories.registry import CategoryDefinition, CategoryField


def _msg(content: str, sender: str, time: str, date: str) -> CategorizedMessage:
    return CategorizedMessage(
        content=content,
        sender=sender,
        time=time,
        date=date,
        timestamp=codec.parse_timestamp(time, date),
    )


@pytest.fixture
def category() -> CategoryDefinition:
    return CategoryDefinition(name="CODE", description="Snippets")


@pytest.fixture
def messages() -> list[CategorizedMessage]:
    return [
        _msg("print('new')", "Ana", "12:00:00", "02/01/2024"),
        _msg("print('old')", "Luis", "09:30:15", "01/01/2024"),
    ]


class TestTimestamp:
    def test_parse(self):
        assert codec.parse_timestamp("10:00:00", "01/01/2024") == datetime(2024, 1, 1, 10).timestamp()

    def test_missing_time_components_default_zero(self):
        assert codec.parse_timestamp("10", "01/01/2024") == datetime(2024, 1, 1, 10).timestamp()
        assert codec.parse_timestamp("", "01/01/2024") == datetime(2024, 1, 1).timestamp()

    @pytest.mark.parametrize(
        "time,date",
        [("10:00:00", ""), ("10:00:00", "01/2024"), ("aa:00:00", "01/01/2024"), ("10:00:00", "32/01/2024")],
    )
    def test_invalid_raises(self, time: str, date: str):
        with pytest.raises(ValueError):
            codec.parse_timestamp(time, date)

    def test_fallback_to_now(self):
        warnings: list[str] = []
        before = datetime.now().timestamp()
        ts = codec.timestamp_or_now("xx", "nope", warnings)
        assert ts >= before
        assert len(warnings) == 1
        assert "using current time" in warnings[0]


class TestHeader:
    def test_plain(self, category: CategoryDefinition):
        header = render_header(category)
        assert header.startswith("**CATEGORIA:** CODE\n\n")
        assert "**Descripcion:** Snippets" in header
        assert "**MENSAJES**" in header

    def test_without_description(self):
        header = render_header(CategoryDefinition(name="X"))
        assert "Descripcion" not in header

    def test_frontmatter(self, category: CategoryDefinition):
        header = render_header(category, use_frontmatter=True)
        post = frontmatter.loads(header)
        assert post.metadata["category"] == "CODE"
        assert post.metadata["description"] == "Snippets"
        assert "**MENSAJES**" in post.content


class TestEncode:
    def test_empty_placeholder(self, category: CategoryDefinition):
        text = encode(render_header(category), category, [])
        assert text.endswith("---\n\n_No hay mensajes en esta categoría aún._\n")

    def test_numbering_newest_highest(self, category: CategoryDefinition, messages):
        text = encode(render_header(category), category, messages)
        assert text.index("## Mensaje #2") < text.index("## Mensaje #1")
        assert text.index("print('new')") < text.index("print('old')")

    def test_full_block(self, category: CategoryDefinition, messages):
        text = encode(render_header(category), category, messages[:1])
        assert (
            "---\n\n"
            "## Mensaje #1\n"
            "- **FECHA:** 02/01/2024\n"
            "- **HORA:** 12:00:00\n"
            "- **AUTOR:** Ana\n"
            "\n"
            "**CONTENIDO:**\n"
            "\n"
            "```\n"
            "print('new')\n"
            "```\n"
        ) in text
        assert text.endswith("```\n")

    def test_field_filtering(self, messages):
        category = CategoryDefinition(
            name="CODE", enabled_fields=CategoryField.AUTHOR | CategoryField.CONTENT
        )
        text = encode(render_header(category), category, messages)
        assert "- **AUTOR:** Ana" in text
        assert "FECHA" not in text
        assert "HORA" not in text
        assert "**CONTENIDO:**" in text

    def test_content_with_fence_gets_longer_fence(self, category: CategoryDefinition):
        content = "```python\nx = 1\n```"
        msg = _msg(content, "Ana", "10:00:00", "01/01/2024")
        text = encode(render_header(category), category, [msg])
        assert "````\n```python\nx = 1\n```\n````" in text

    def test_timestamp_line_only_when_fields_cannot_rebuild(self, category, messages):
        assert "<!-- ts:" not in encode(render_header(category), category, messages)

        restricted = CategoryDefinition(
            name="CODE", enabled_fields=CategoryField.AUTHOR | CategoryField.CONTENT
        )
        text = encode(render_header(restricted), restricted, messages[:1])
        assert (
            f"- **AUTOR:** Ana\n<!-- ts: {messages[0].timestamp!r} -->\n\n**CONTENIDO:**"
        ) in text

    def test_timestamp_line_for_unparsable_time(self, category: CategoryDefinition):
        msg = CategorizedMessage(
            content="x", sender="Ana", time="garbage", date="", timestamp=1700000000.5
        )
        doc = decode(encode(render_header(category), category, [msg]), required=CategoryField.CONTENT)
        assert doc.messages[0].timestamp == 1700000000.5
        assert doc.warnings == []


class TestDecode:
    def test_roundtrip_all_fields(self, category: CategoryDefinition, messages):
        header = render_header(category)
        doc = decode(encode(header, category, messages))
        assert doc.header == header
        assert doc.messages == messages
        assert doc.warnings == []

    def test_roundtrip_restricted_fields(self, messages):
        category = CategoryDefinition(
            name="CODE", enabled_fields=CategoryField.AUTHOR | CategoryField.CONTENT
        )
        doc = decode(
            encode(render_header(category), category, messages), required=CategoryField.CONTENT
        )
        assert [(m.content, m.sender, m.timestamp) for m in doc.messages] == [
            (m.content, m.sender, m.timestamp) for m in messages
        ]

    def test_roundtrip_date_only_keeps_exact_time(self, messages):
        category = CategoryDefinition(
            name="CODE", enabled_fields=CategoryField.DATE | CategoryField.CONTENT
        )
        doc = decode(
            encode(render_header(category), category, messages), required=CategoryField.CONTENT
        )
        assert [m.timestamp for m in doc.messages] == [m.timestamp for m in messages]
        assert doc.messages[0].date == "02/01/2024"

    def test_roundtrip_tricky_content(self, category: CategoryDefinition):
        msg = _msg("line one\n---\n```\nnested\n```\n- **AUTOR:** fake", "Ana", "10:00:00", "01/01/2024")
        doc = decode(encode(render_header(category), category, [msg]))
        assert doc.messages == [msg]

    def test_roundtrip_frontmatter_header(self, category: CategoryDefinition, messages):
        header = render_header(category, use_frontmatter=True)
        doc = decode(encode(header, category, messages))
        assert doc.header == header
        assert doc.messages == messages

    def test_placeholder_document(self, category: CategoryDefinition):
        doc = decode(encode(render_header(category), category, []))
        assert doc.messages == []
        assert doc.warnings == []

    def test_skips_block_missing_date(self, category: CategoryDefinition, messages):
        text = encode(render_header(category), category, messages)
        text = text.replace("- **FECHA:** 01/01/2024\n", "")
        doc = decode(text)
        assert [m.content for m in doc.messages] == ["print('new')"]
        assert len(doc.warnings) == 1
        assert "FECHA" in doc.warnings[0]
        assert "Mensaje #1" in doc.warnings[0]

    def test_skips_block_without_fence(self, category: CategoryDefinition):
        raw = (
            render_header(category)
            + "---\n\n## Mensaje #1\n- **FECHA:** 01/01/2024\n- **HORA:** 10:00:00\n"
        )
        doc = decode(raw)
        assert doc.messages == []
        assert "CONTENIDO" in doc.warnings[0]

    def test_bad_date_falls_back_to_now(self, category: CategoryDefinition):
        raw = (
            render_header(category)
            + "---\n\n## Mensaje #1\n- **FECHA:** 99/99/2024\n- **HORA:** 10:00:00\n"
            + "- **AUTOR:** Ana\n\n**CONTENIDO:**\n\n```\nhello\n```\n"
        )
        before = datetime.now().timestamp()
        doc = decode(raw)
        assert len(doc.messages) == 1
        assert doc.messages[0].timestamp >= before
        assert any("using current time" in w for w in doc.warnings)

    def test_missing_author_defaults(self, category: CategoryDefinition):
        raw = (
            render_header(category)
            + "---\n\n## Mensaje #1\n- **FECHA:** 01/01/2024\n- **HORA:** 10:00:00\n"
            + "\n**CONTENIDO:**\n\n```\nhello\n```\n"
        )
        doc = decode(raw)
        assert doc.messages[0].sender == codec.UNKNOWN_AUTHOR

    def test_legacy_separator_header(self):
        raw = (
            "# Old archive\n---\n\n"
            "## Mensaje #1\n- **FECHA:** 01/01/2024\n- **HORA:** 10:00:00\n"
            "- **AUTOR:** Ana\n\n**CONTENIDO:**\n\n```\nhello\n```\n"
        )
        doc = decode(raw)
        assert doc.header == "# Old archive\n---\n\n"
        assert [m.content for m in doc.messages] == ["hello"]

    def test_no_structure_is_all_header(self):
        raw = "just some notes\nwithout structure\n"
        doc = decode(raw)
        assert doc.header == raw
        assert doc.messages == []

    def test_crlf_input(self, category: CategoryDefinition, messages):
        text = encode(render_header(category), category, messages).replace("\n", "\r\n")
        doc = decode(text)
        assert doc.messages == messages

    def test_invalid_timestamp_line_falls_back_to_date(self, category: CategoryDefinition):
        raw = (
            render_header(category)
            + "---\n\n## Mensaje #1\n- **FECHA:** 01/01/2024\n- **HORA:** 10:00:00\n"
            + "<!-- ts: soon -->\n\n**CONTENIDO:**\n\n```\nhello\n```\n"
        )
        doc = decode(raw)
        assert doc.messages[0].timestamp == datetime(2024, 1, 1, 10).timestamp()
        assert any("soon" in w for w in doc.warnings)

    def test_timestamp_line_inside_content_is_content(self, category: CategoryDefinition):
        msg = _msg("<!-- ts: 1.0 -->", "Ana", "10:00:00", "01/01/2024")
        doc = decode(encode(render_header(category), category, [msg]))
        assert doc.messages == [msg]
