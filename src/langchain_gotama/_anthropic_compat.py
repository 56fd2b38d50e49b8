from __future__ import annotations

from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage


def _extract_text_from_parts(content: Any) -> str:
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return str(content)

    chunks: list[str] = []
    for p in content:
        if isinstance(p, str):
            chunks.append(p)
        elif isinstance(p, dict):
            # soporta tanto {type:text,text:...} como variantes
            if p.get("type") == "text" and isinstance(p.get("text"), str):
                chunks.append(p["text"])
            elif isinstance(p.get("content"), str):
                chunks.append(p["content"])
    return "\n".join([c for c in chunks if c])


def _role_for(m: BaseMessage) -> str:
    if isinstance(m, HumanMessage):
        return "user"
    if isinstance(m, AIMessage):
        return "assistant"
    role = getattr(m, "role", None) or getattr(m, "type", "user")
    # Messages API solo acepta user/assistant en `messages`
    return "assistant" if role in ("ai", "assistant") else "user"


def lc_messages_to_anthropic(messages: list[BaseMessage]) -> tuple[str | None, list[dict[str, Any]]]:
    """
    Convierte mensajes LangChain al formato de la Messages API de Anthropic.

    - Los SystemMessage se extraen y concatenan en el campo `system`.
    - Turnos consecutivos del mismo rol se unen (la API exige alternancia user/assistant).
    - Solo se envía texto; bloques no textuales se descartan.

    Returns:
        (system, messages)
    """
    system_parts: list[str] = []
    out: list[dict[str, Any]] = []

    for m in messages:
        text = _extract_text_from_parts(m.content)

        if isinstance(m, SystemMessage):
            if text.strip():
                system_parts.append(text)
            continue

        role = _role_for(m)
        if out and out[-1]["role"] == role:
            out[-1]["content"] = f"{out[-1]['content']}\n\n{text}" if text else out[-1]["content"]
            continue
        out.append({"role": role, "content": text})

    system = "\n\n".join(system_parts) if system_parts else None
    return system, out
