import itertools

import pytest

from langchain_gotama.blocks import (
    BlockBuffer,
    BlockKind,
    BufferMode,
    CompletedBlock,
    PlainText,
    UnterminatedBlock,
)

CITATION = "<citation>A</citation>"


def _feed_all(buffer: BlockBuffer, fragments: list[str]) -> list:
    units = []
    for fragment in fragments:
        units.extend(buffer.feed(fragment))
    units.extend(buffer.flush())
    return units


def test_scenario_torn_citation_between_plain_text() -> None:
    buffer = BlockBuffer()
    units = _feed_all(buffer, ["Hello ", "<cita", "tion><verse>Snp 4.2</verse></cita", "tion> world"])

    assert units == [
        PlainText("Hello "),
        CompletedBlock(BlockKind.CITATION, "<citation><verse>Snp 4.2</verse></citation>"),
        PlainText(" world"),
    ]


@pytest.mark.parametrize("offset", range(len(CITATION) + 1))
def test_citation_split_at_every_offset_yields_one_block(offset: int) -> None:
    buffer = BlockBuffer()
    units = _feed_all(buffer, [CITATION[:offset], CITATION[offset:]])

    assert units == [CompletedBlock(BlockKind.CITATION, CITATION)]


def test_concatenation_is_preserved_for_every_three_way_split() -> None:
    source = "Intro <citation><verse>Snp 4.2</verse>\n<pali>X</pali></citation> then <pause>5 seconds</pause> end <"
    for i, j in itertools.combinations(range(len(source) + 1), 2):
        buffer = BlockBuffer()
        units = _feed_all(buffer, [source[:i], source[i:j], source[j:]])

        assert "".join(u.text for u in units) == source
        blocks = [u for u in units if isinstance(u, CompletedBlock)]
        assert [b.text for b in blocks] == ["<citation><verse>Snp 4.2</verse>\n<pali>X</pali></citation>"]


def test_character_by_character_feed() -> None:
    source = "a<citation>b</citation>c<citation>d</citation>"
    buffer = BlockBuffer()
    units = _feed_all(buffer, list(source))

    assert [u for u in units if isinstance(u, CompletedBlock)] == [
        CompletedBlock(BlockKind.CITATION, "<citation>b</citation>"),
        CompletedBlock(BlockKind.CITATION, "<citation>d</citation>"),
    ]
    assert "".join(u.text for u in units) == source


def test_no_release_until_close_marker_is_fully_observed() -> None:
    buffer = BlockBuffer()

    assert buffer.feed("<citation>") == []
    assert buffer.mode is BufferMode.IN_CITATION
    for fragment in ["<verse>Snp", " 4.2</verse>", "\n", "</", "citation"]:
        assert buffer.feed(fragment) == []
    assert buffer.accumulated == "<citation><verse>Snp 4.2</verse>\n</citation"

    units = buffer.feed(">")

    assert units == [CompletedBlock(BlockKind.CITATION, "<citation><verse>Snp 4.2</verse>\n</citation>")]
    assert buffer.mode is BufferMode.PLAIN
    assert buffer.accumulated == ""


def test_text_before_open_marker_in_same_fragment_is_released_first() -> None:
    buffer = BlockBuffer()

    units = buffer.feed("Mira esto: <citation><verse>Snp")

    assert units == [PlainText("Mira esto: ")]
    assert buffer.accumulated == "<citation><verse>Snp"


def test_block_opened_and_closed_in_one_fragment_with_trailing_text() -> None:
    buffer = BlockBuffer()

    units = buffer.feed("x<citation>A</citation>y<citation>B")

    assert units == [
        PlainText("x"),
        CompletedBlock(BlockKind.CITATION, "<citation>A</citation>"),
        PlainText("y"),
    ]
    assert buffer.mode is BufferMode.IN_CITATION
    assert buffer.accumulated == "<citation>B"


def test_held_partial_marker_is_released_when_disproved() -> None:
    buffer = BlockBuffer()

    assert buffer.feed("a <ci") == [PlainText("a ")]
    assert buffer.held == "<ci"
    assert buffer.mode is BufferMode.PLAIN

    assert buffer.feed("rcle>") == [PlainText("<circle>")]
    assert buffer.held == ""


def test_flush_releases_held_text_at_stream_end() -> None:
    buffer = BlockBuffer()
    buffer.feed("2 < 3 and 4 <")

    assert buffer.flush() == [PlainText("<")]
    assert buffer.flush() == []


def test_empty_fragment_releases_nothing() -> None:
    buffer = BlockBuffer()

    assert buffer.feed("") == []
    assert buffer.mode is BufferMode.PLAIN


def test_pause_is_plain_text_by_default() -> None:
    buffer = BlockBuffer()

    units = _feed_all(buffer, ["<pause>30 ", "seconds</pause>"])

    assert all(isinstance(u, PlainText) for u in units)
    assert "".join(u.text for u in units) == "<pause>30 seconds</pause>"


def test_pause_tracking_is_opt_in() -> None:
    buffer = BlockBuffer([BlockKind.CITATION, BlockKind.PAUSE])

    assert buffer.feed("Respira. <pau") == [PlainText("Respira. ")]
    assert buffer.feed("se>2 minutes</pa") == []
    assert buffer.mode is BufferMode.IN_PAUSE

    units = buffer.feed("use>\n<citation>")

    assert units == [CompletedBlock(BlockKind.PAUSE, "<pause>2 minutes</pause>"), PlainText("\n")]
    assert buffer.mode is BufferMode.IN_CITATION


def test_unterminated_block_is_reported_not_released() -> None:
    buffer = BlockBuffer()
    units = _feed_all(buffer, ["ok ", "<citation><verse>Snp 4.2"])

    assert units == [PlainText("ok ")]
    assert buffer.unterminated_block() == UnterminatedBlock(BlockKind.CITATION, "<citation><verse>Snp 4.2")


def test_no_unterminated_block_in_plain_mode() -> None:
    buffer = BlockBuffer()
    buffer.feed("hola")

    assert buffer.unterminated_block() is None


def test_reset_behaves_like_fresh_buffer() -> None:
    fragments = ["tion>", "Hi <cit", "ation>A</citation>"]
    fresh = BlockBuffer()
    expected = _feed_all(fresh, fragments)

    used = BlockBuffer()
    used.feed("text <citation><verse>dangling")
    used.feed("<ci")
    used.reset()

    assert used.mode is BufferMode.PLAIN
    assert used.accumulated == ""
    assert used.held == ""
    assert _feed_all(used, fragments) == expected


def test_requires_at_least_one_block_kind() -> None:
    with pytest.raises(ValueError):
        BlockBuffer([])


def test_malformed_citation_is_delivered_as_block() -> None:
    buffer = BlockBuffer()

    units = buffer.feed("<citation><pali>solo pali</pali></citation>")

    assert units == [CompletedBlock(BlockKind.CITATION, "<citation><pali>solo pali</pali></citation>")]
