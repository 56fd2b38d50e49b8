from __future__ import annotations

import os

import pytest
from dotenv import find_dotenv, load_dotenv


@pytest.fixture(scope="session", autouse=True)
def _load_env() -> None:
    load_dotenv(find_dotenv(usecwd=True))


@pytest.fixture(scope="session")
def anthropic_api_key() -> str:
    key = os.getenv("ANTHROPIC_API_KEY")
    if not key:
        pytest.skip("Missing ANTHROPIC_API_KEY (load it from .env)")
    return key


@pytest.fixture()
def chat(monkeypatch: pytest.MonkeyPatch):
    from langchain_gotama.chat import ChatGotama

    # Los contratos de Runnable parchean _http; basta con una key de relleno.
    monkeypatch.setenv("ANTHROPIC_API_KEY", os.getenv("ANTHROPIC_API_KEY") or "sk-ant-placeholder")
    return ChatGotama(temperature=0, max_tokens=512)


@pytest.fixture()
def message_payload():
    def _build(text: str) -> dict:
        return {
            "id": "msg_test",
            "type": "message",
            "role": "assistant",
            "model": "fake",
            "content": [{"type": "text", "text": text}],
            "stop_reason": "end_turn",
            "usage": {"input_tokens": 1, "output_tokens": 1},
        }

    return _build
