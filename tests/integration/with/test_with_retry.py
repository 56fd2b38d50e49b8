from __future__ import annotations

from dataclasses import dataclass

from langchain_gotama._errors import GotamaAPIError


def test_with_retry_contract(monkeypatch, chat, message_payload):
    @dataclass
    class FakeResponse:
        payload: dict

        def json(self):
            return self.payload

    calls = {"n": 0}

    def flaky_post_json(path, payload, stream=False):
        calls["n"] += 1
        if calls["n"] < 3:
            raise GotamaAPIError(status_code=529, message="Overloaded", error_type="overloaded_error")
        return FakeResponse(message_payload("pong"))

    monkeypatch.setattr(chat._http, "post_json", flaky_post_json)

    runnable = chat.with_retry(stop_after_attempt=3)
    msg = runnable.invoke("Responde solo con: pong")

    assert calls["n"] == 3
    assert msg.content.strip().lower() == "pong"
