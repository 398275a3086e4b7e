import json

import pytest
import requests

import llm


class FakeResponse:
    def __init__(self, status_code=200, data=None, text=None):
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self.reason = "Error" if not self.ok else "OK"
        self._data = data
        self.text = text if text is not None else (json.dumps(data) if data is not None else "")

    def json(self):
        if self._data is None:
            raise ValueError("not json")
        return self._data


def responses_payload(ideas):
    return {"output_text": json.dumps({"ideas": ideas})}


def chat_payload(ideas):
    return {"choices": [{"message": {"role": "assistant", "content": json.dumps({"ideas": ideas})}}]}


SAMPLE_IDEAS = [
    {"title": "Pour-over Kit", "rationale": "For slow mornings", "approxPriceUSD": 45,
     "categories": ["coffee"], "urlHint": "pour over coffee kit", "wowFactor": 4},
    {"title": "Hiking Socks", "rationale": "Merino, warm", "approxPriceUSD": "18.5",
     "categories": ["outdoors", "apparel"], "wowFactor": 2},
]


class FakePost:
    """Stands in for requests.post, answering per URL and recording every call."""

    def __init__(self, routes):
        self.routes = routes
        self.calls = []

    def __call__(self, url, headers=None, json=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        answer = self.routes.get(url)
        if isinstance(answer, Exception):
            raise answer
        if answer is None:
            raise requests.ConnectionError(f"no route for {url}")
        return answer

    def urls(self):
        return [c["url"] for c in self.calls]


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setattr(llm, "OPENAI_API_KEY", "sk-test")
    return "sk-test"


@pytest.fixture
def fake_post(monkeypatch):
    def install(routes):
        fake = FakePost(routes)
        monkeypatch.setattr(llm.requests, "post", fake)
        return fake
    return install
