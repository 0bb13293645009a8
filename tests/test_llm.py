import pytest

from toonstudio.common import llm


def test_call_chat_completion_forwards_schema_and_tools(monkeypatch):
    captured = {}

    def fake_completion(**payload):
        captured.update(payload)
        return {"choices": [{"message": {"content": "  hello  "}}]}

    monkeypatch.setattr(llm, "completion", fake_completion)

    result = llm.call_chat_completion(
        model="gemini/gemini-2.5-flash",
        messages=[{"role": "user", "content": "hi"}],
        api_key="secret",
        response_format={"type": "json_schema"},
        tools=[{"googleSearch": {}}],
    )

    assert result.text == "hello"
    assert captured["api_key"] == "secret"
    assert captured["tools"] == [{"googleSearch": {}}]
    assert captured["response_format"] == {"type": "json_schema"}
    assert "temperature" not in captured


def test_empty_content_becomes_empty_text(monkeypatch):
    monkeypatch.setattr(llm, "completion", lambda **_: {"choices": [{"message": {"content": None}}]})

    assert llm.call_chat_completion(model="m", messages=[]).text == ""


def test_unexpected_shape_raises(monkeypatch):
    monkeypatch.setattr(llm, "completion", lambda **_: {"choices": []})

    with pytest.raises(RuntimeError, match="Unexpected LiteLLM response format."):
        llm.call_chat_completion(model="m", messages=[])
