"""Tests for embedding utilities."""

from __future__ import annotations

import pytest
import requests
import tenacity

from bank_grounding.core.config import Settings
from bank_grounding.core.errors import EmbeddingError
from bank_grounding.ingest import embeddings
from bank_grounding.ingest.embeddings import (
    HashedEmbeddingModel,
    VoyageEmbeddingModel,
    clear_embedding_models,
    get_embedding_model,
)


class FakeResponse:
    def __init__(self, status_code: int, payload: dict | None = None) -> None:
        self.status_code = status_code
        self._payload = payload or {}
        self.text = str(payload)

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> dict:
        return self._payload


class FakeSession:
    def __init__(self, responses: list) -> None:
        self.responses = list(responses)
        self.calls: list[dict] = []

    def post(self, url: str, json: dict, headers: dict, timeout: int):
        self.calls.append(json)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _voyage_payload(count: int, dim: int) -> dict:
    return {"data": [{"index": index, "embedding": [float(index)] * dim} for index in range(count)]}


@pytest.fixture
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Collect retry waits instead of sleeping; batch pacing becomes a no-op."""
    waits: list[float] = []
    monkeypatch.setattr(tenacity.nap, "sleep", waits.append)
    monkeypatch.setattr(embeddings.time, "sleep", lambda seconds: None)
    return waits


def test_hashed_model_is_normalized_and_deterministic() -> None:
    model = HashedEmbeddingModel("test", dim=16)
    vectors = model.encode(["hello world", "world hello"]).vectors
    assert len(vectors) == 2
    assert all(len(vec) == model.dim for vec in vectors)
    assert abs(sum(value * value for value in vectors[0]) - 1.0) < 1e-6
    assert vectors[0] == vectors[1]


def test_hashed_model_empty_text_is_zero_vector() -> None:
    vector = HashedEmbeddingModel("test", dim=8).embed_query("")
    assert vector == [0.0] * 8


def test_get_embedding_model_caches_instances() -> None:
    settings = Settings(embedding_dim=8)
    first = get_embedding_model(settings)
    assert first is get_embedding_model(settings)
    assert isinstance(first, HashedEmbeddingModel)
    clear_embedding_models()
    assert get_embedding_model(settings) is not first


def test_voyage_batches_requests(no_sleep) -> None:
    session = FakeSession([FakeResponse(200, _voyage_payload(2, 4)), FakeResponse(200, _voyage_payload(1, 4))])
    model = VoyageEmbeddingModel("voyage-3", dim=4, api_key="key", batch_size=2, session=session)

    batch = model.encode(["a", "b", "c"], input_type="document")

    assert len(batch.vectors) == 3
    assert [len(call["input"]) for call in session.calls] == [2, 1]
    assert session.calls[0]["input_type"] == "document"
    assert no_sleep == []


def test_voyage_retries_with_exponential_backoff(no_sleep, caplog) -> None:
    session = FakeSession(
        [
            FakeResponse(429),
            requests.ConnectionError("reset"),
            FakeResponse(503),
            FakeResponse(200, _voyage_payload(1, 4)),
        ]
    )
    model = VoyageEmbeddingModel("voyage-3", dim=4, api_key="key", session=session)

    with caplog.at_level("WARNING"):
        assert model.embed_query("capital adequacy") == [0.0] * 4
    assert no_sleep == [1, 2, 4]
    assert session.calls[-1]["input_type"] == "query"
    assert caplog.text.count("retrying") == 3


def test_voyage_gives_up_after_retries(no_sleep) -> None:
    session = FakeSession([FakeResponse(500)] * 4)
    model = VoyageEmbeddingModel("voyage-3", dim=4, api_key="key", session=session)

    with pytest.raises(EmbeddingError, match="after retries"):
        model.encode(["text"])
    assert len(session.calls) == 4
    assert no_sleep == [1, 2, 4]


def test_voyage_network_failure_is_wrapped(no_sleep) -> None:
    session = FakeSession([requests.Timeout("slow")] * 2)
    model = VoyageEmbeddingModel("voyage-3", dim=4, api_key="key", retries=1, session=session)

    with pytest.raises(EmbeddingError):
        model.encode(["text"])
    assert no_sleep == [1]


def test_voyage_client_error_is_not_retried(no_sleep) -> None:
    session = FakeSession([FakeResponse(400, {"detail": "bad input"})])
    model = VoyageEmbeddingModel("voyage-3", dim=4, api_key="key", session=session)

    with pytest.raises(EmbeddingError):
        model.encode(["text"])
    assert no_sleep == []


def test_voyage_dimension_check(no_sleep) -> None:
    session = FakeSession([FakeResponse(200, _voyage_payload(1, 3))])
    model = VoyageEmbeddingModel("voyage-3", dim=4, api_key="key", session=session)

    with pytest.raises(EmbeddingError):
        model.encode(["text"])


def test_voyage_requires_api_key() -> None:
    model = VoyageEmbeddingModel("voyage-3", dim=4, api_key=None, session=FakeSession([]))
    with pytest.raises(EmbeddingError):
        model.encode(["text"])
