import json

import anyio
import httpx
import pytest
from pydantic import BaseModel

from contentbot.services.errors import LLMError, StructuredOutputError
from contentbot.services.llm_client import LLMClient, extract_json_string


class Verdict(BaseModel):
    ok: bool
    note: str = ""


def test_extract_json_from_fenced_answer():
    raw = 'Sure! Here it is:\n```json\n{"ok": true}\n```\nanything else?'
    assert extract_json_string(raw) == '{"ok": true}'


def test_extract_json_from_prose():
    assert extract_json_string('The answer is {"ok": false, "note": "x"} as requested.') == '{"ok": false, "note": "x"}'


def client_for(handler):
    return LLMClient(api_token="t", base_url="https://llm.example.com/models/", transport=httpx.MockTransport(handler))


def test_falls_back_to_next_model():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        if request.url.path.endswith("/first"):
            return httpx.Response(503, text="loading")
        return httpx.Response(200, json=[{"generated_text": " hello "}])

    llm = client_for(handler)
    assert anyio.run(lambda: llm.generate_text("hi", models=["first", "second"])) == "hello"
    assert calls == ["/models/first", "/models/second"]


def test_all_models_failing_raises():
    llm = client_for(lambda request: httpx.Response(500, text="down"))
    with pytest.raises(LLMError) as exc:
        anyio.run(lambda: llm.generate_text("hi", models=["a", "b"]))
    assert "All models failed" in str(exc.value)


def test_missing_token_raises():
    llm = LLMClient(api_token="", transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    with pytest.raises(LLMError):
        anyio.run(lambda: llm.text_generation("m", "hi"))


def test_generate_object_parses_schema():
    def handler(request):
        body = json.loads(request.content)
        assert "JSON schema" in body["inputs"]
        assert body["parameters"]["temperature"] == 0.2
        return httpx.Response(200, json={"generated_text": '```json\n{"ok": true, "note": "fine"}\n```'})

    out = anyio.run(lambda: client_for(handler).generate_object("check", Verdict, models=["m"]))
    assert out == Verdict(ok=True, note="fine")


def test_generate_object_unparseable():
    llm = client_for(lambda request: httpx.Response(200, json={"generated_text": "I cannot answer"}))
    with pytest.raises(StructuredOutputError) as exc:
        anyio.run(lambda: llm.generate_object("check", Verdict, models=["m"]))
    assert exc.value.raw == "I cannot answer"


def test_non_json_answer_falls_back_to_next_model():
    def handler(request):
        if request.url.path.endswith("/first"):
            return httpx.Response(200, text="<html>gateway</html>")
        return httpx.Response(200, json={"generated_text": "ok"})

    llm = client_for(handler)
    assert anyio.run(lambda: llm.generate_text("hi", models=["first", "second"])) == "ok"
