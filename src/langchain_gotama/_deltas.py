from __future__ import annotations

from dataclasses import dataclass

from langchain_gotama._sse import ContentBlockDeltaEvent, ProtocolEvent

TEXT_DELTA = "text_delta"


@dataclass(frozen=True, slots=True)
class TextDelta:
    """Incremental text fragment carried by a `content_block_delta` event."""

    text: str


def extract_text_delta(event: ProtocolEvent) -> TextDelta | None:
    """
    Devuelve el fragmento de texto de un evento, o None.

    Solo los `content_block_delta` con delta `text_delta` llevan texto; el resto
    (incluido `input_json_delta` de tool calls) se ignora.
    """
    if not isinstance(event, ContentBlockDeltaEvent):
        return None
    delta = event.delta
    if delta.type != TEXT_DELTA or delta.text is None:
        return None
    return TextDelta(text=delta.text)
