from types import SimpleNamespace

import pytest

from intolescan import config
from intolescan.db import HistoryStore, ProfileStore
from intolescan.models import EvalResponse, ProductRecord
from intolescan.openfood_api import clear_cache


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else ("" if payload is None else str(payload))

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if self._payload is None:
            raise ValueError("no JSON")
        return self._payload


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeOpenAI:
    def __init__(self, content=None, error=None):
        self.completions = FakeCompletions(content=content, error=error)
        self.chat = SimpleNamespace(completions=self.completions)


class RecordingAdvisor:
    def __init__(self, status=None, notes=None):
        self.requests = []
        self.reply = EvalResponse(status=status, notes=notes or [])

    def __call__(self, request):
        self.requests.append(request)
        return self.reply


@pytest.fixture(autouse=True)
def _isolated(monkeypatch, tmp_path):
    clear_cache()
    monkeypatch.setattr(config, "OPENAI_API_KEY", None)
    monkeypatch.setattr(config, "EVAL_URL", None)
    monkeypatch.setattr(config, "DATA_DIR", tmp_path / "data")
    yield
    clear_cache()


@pytest.fixture
def make_product():
    def _make(**fields):
        fields.setdefault("code", "8586000000001")
        fields.setdefault("name", "Test product")
        return ProductRecord(**fields)
    return _make


@pytest.fixture
def profile_store(tmp_path):
    return ProfileStore(tmp_path / "state")


@pytest.fixture
def history_store(tmp_path):
    return HistoryStore(tmp_path / "state", limit=5)
