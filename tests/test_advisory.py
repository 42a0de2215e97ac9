import httpx
import openai
import pytest
import requests

from intolescan import advisory, config
from intolescan.models import EvalRequest
from tests.conftest import FakeOpenAI, FakeResponse

REQUEST = EvalRequest(code="8586000000001", name="Horalky", ingredients="wheat flour, cocoa",
                      intolerances=["gluten"], lang="en")


def test_missing_key_means_maybe_without_calling_the_model():
    reply = advisory.evaluate_product(REQUEST)
    assert reply.ok
    assert reply.status == "maybe"
    assert "OPENAI_API_KEY" in reply.notes[0]


def test_model_reply_is_parsed():
    client = FakeOpenAI(content='{"status": "avoid", "notes": ["Contains wheat."]}')
    reply = advisory.evaluate_product(REQUEST, client=client)
    assert reply.status == "avoid"
    assert reply.notes == ["Contains wheat."]

    call = client.completions.calls[0]
    assert call["model"] == config.OPENAI_MODEL
    assert call["response_format"] == {"type": "json_object"}
    assert "wheat flour, cocoa" in call["messages"][1]["content"]
    assert "Gluten" in call["messages"][1]["content"]


def test_json_wrapped_in_prose_is_recovered():
    client = FakeOpenAI(content='Sure!\n```json\n{"status": "safe", "notes": ["Gluten-free."]}\n```')
    reply = advisory.evaluate_product(REQUEST, client=client)
    assert reply.status == "safe"
    assert reply.notes == ["Gluten-free."]


@pytest.mark.parametrize("content", [None, "", "not json at all", '["a", "b"]'])
def test_unusable_reply_is_insufficient_data(content):
    reply = advisory.evaluate_product(REQUEST, client=FakeOpenAI(content=content))
    assert reply.status == "maybe"
    assert reply.notes == [advisory.INSUFFICIENT_DATA]


def test_invalid_status_and_extra_notes_are_normalized():
    content = '{"status": "fine", "notes": ["1", "2", " ", "3", "4", "5", "6"]}'
    reply = advisory.evaluate_product(REQUEST, client=FakeOpenAI(content=content))
    assert reply.status == "maybe"
    assert reply.notes == ["1", "2", "3", "4", "5"]


def test_http_error_from_the_model_provider():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    error = openai.APIStatusError("upstream exploded", response=httpx.Response(500, request=request), body=None)
    reply = advisory.evaluate_product(REQUEST, client=FakeOpenAI(error=error))
    assert reply.status == "maybe"
    assert reply.notes[0] == "AI request failed (HTTP 500)."
    assert "upstream exploded" in reply.notes[1]


def test_timeout_from_the_model_provider():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    reply = advisory.evaluate_product(REQUEST, client=FakeOpenAI(error=openai.APITimeoutError(request=request)))
    assert reply.status == "maybe"
    assert reply.notes[0] == "AI request failed."


def test_unexpected_client_error_still_returns_maybe():
    reply = advisory.evaluate_product(REQUEST, client=FakeOpenAI(error=RuntimeError("boom")))
    assert reply.status == "maybe"
    assert reply.notes == ["AI request failed.", "boom"]


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.posts = []

    def post(self, url, json=None, timeout=None):
        self.posts.append((url, json, timeout))
        if self.error is not None:
            raise self.error
        return self.response


def test_eval_client_success():
    session = FakeSession(FakeResponse(200, {"ok": True, "status": "safe", "notes": ["Looks fine."]}))
    client = advisory.EvalClient("https://eval.example/api/eval", session=session)
    reply = client(REQUEST)
    assert reply.ok and reply.status == "safe"
    assert reply.notes == ["Looks fine."]
    url, body, _ = session.posts[0]
    assert url == "https://eval.example/api/eval"
    assert body["code"] == REQUEST.code
    assert body["intolerances"] == ["gluten"]


def test_eval_client_http_error():
    session = FakeSession(FakeResponse(502, None, text="Bad gateway"))
    reply = advisory.EvalClient("https://eval.example", session=session).evaluate(REQUEST)
    assert not reply.ok
    assert reply.status == "maybe"
    assert reply.notes == ["AI evaluation unavailable (HTTP 502).", "Bad gateway"]


def test_eval_client_network_error():
    session = FakeSession(error=requests.Timeout("slow"))
    reply = advisory.EvalClient("https://eval.example", session=session).evaluate(REQUEST)
    assert not reply.ok
    assert reply.status == "maybe"
    assert "network or timeout" in reply.notes[0]


@pytest.mark.parametrize("payload", [None, {"ok": False, "error": "nope"}])
def test_eval_client_unusable_reply(payload):
    session = FakeSession(FakeResponse(200, payload, text="garbage"))
    reply = advisory.EvalClient("https://eval.example", session=session).evaluate(REQUEST)
    assert not reply.ok
    assert reply.status == "maybe"
    assert reply.notes


def test_default_advisor_prefers_remote_handler(monkeypatch):
    assert advisory.default_advisor() is advisory.evaluate_product
    monkeypatch.setattr(config, "EVAL_URL", "https://eval.example/api/eval")
    assert isinstance(advisory.default_advisor(), advisory.EvalClient)
