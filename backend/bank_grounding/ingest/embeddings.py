"""Embedding backends."""

from __future__ import annotations

import hashlib
import logging
import math
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Literal, Sequence

import requests
from tenacity import RetryCallState, Retrying, nap, retry_if_exception_type, stop_after_attempt, wait_exponential

from bank_grounding.core.config import Settings
from bank_grounding.core.errors import EmbeddingError

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"\w+")

InputType = Literal["document", "query"]

VOYAGE_URL = "https://api.voyageai.com/v1/embeddings"
RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class RetryableStatusError(Exception):
    """Voyage answered with a status worth retrying (throttling or a server error)."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"status {status_code}")
        self.status_code = status_code


@dataclass(slots=True)
class EmbeddingBatch:
    vectors: list[list[float]]
    model: str
    dim: int
    backend: str


class EmbeddingModel(ABC):
    """Turns text into fixed-length vectors.

    Every vector a model emits has exactly ``dim`` components; documents and
    queries must be embedded by the same model to be comparable.
    """

    backend: str = "abstract"

    def __init__(self, model_name: str, dim: int) -> None:
        self.model_name = model_name
        self._dim = dim

    @property
    def dim(self) -> int:
        return self._dim

    @abstractmethod
    def encode(self, texts: Iterable[str], input_type: InputType = "document") -> EmbeddingBatch:
        ...

    def embed_query(self, text: str) -> list[float]:
        return self.encode([text], input_type="query").vectors[0]


class HashedEmbeddingModel(EmbeddingModel):
    """Deterministic bag-of-words hashing embedder that needs no network."""

    backend = "hashed"

    def encode(self, texts: Iterable[str], input_type: InputType = "document") -> EmbeddingBatch:
        vectors: list[list[float]] = []
        for text in texts:
            vector = [0.0] * self._dim
            for token in _tokenize(text):
                vector[_hash_token(token, self._dim)] += 1.0
            _normalize(vector)
            vectors.append(vector)
        return EmbeddingBatch(vectors=vectors, model=self.model_name, dim=self._dim, backend=self.backend)


class VoyageEmbeddingModel(EmbeddingModel):
    """Client for the Voyage AI embeddings endpoint."""

    backend = "voyage"

    def __init__(
        self,
        model_name: str,
        dim: int,
        api_key: str | None,
        batch_size: int = 128,
        retries: int = 3,
        batch_delay: float = 1.0,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(model_name, dim)
        if not api_key:
            logger.warning("No Voyage API key configured; embedding calls will fail")
        self.api_key = api_key
        self.batch_size = batch_size
        self.retries = retries
        self.batch_delay = batch_delay
        self.session = session or requests.Session()

    def encode(self, texts: Iterable[str], input_type: InputType = "document") -> EmbeddingBatch:
        items = list(texts)
        vectors: list[list[float]] = []
        batch_count = math.ceil(len(items) / self.batch_size)
        for batch_number, start in enumerate(range(0, len(items), self.batch_size), start=1):
            batch = items[start : start + self.batch_size]
            logger.info("Embedding batch %s/%s (%s texts)", batch_number, batch_count, len(batch))
            vectors.extend(self._post(batch, input_type))
            if start + self.batch_size < len(items) and self.batch_delay > 0:
                time.sleep(self.batch_delay)
        for vector in vectors:
            if len(vector) != self._dim:
                raise EmbeddingError(f"{self.model_name} returned {len(vector)} dimensions, expected {self._dim}")
        return EmbeddingBatch(vectors=vectors, model=self.model_name, dim=self._dim, backend=self.backend)

    def _post(self, batch: Sequence[str], input_type: InputType) -> list[list[float]]:
        if not self.api_key:
            raise EmbeddingError("Voyage API key not configured")
        payload = {"input": list(batch), "model": self.model_name, "input_type": input_type}
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        retrying = Retrying(
            retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout, RetryableStatusError)),
            wait=wait_exponential(multiplier=1),
            stop=stop_after_attempt(self.retries + 1),
            before_sleep=self._log_retry,
            sleep=nap.sleep,
            reraise=True,
        )
        try:
            resp = retrying(self._send, payload, headers)
        except RetryableStatusError as exc:
            raise EmbeddingError(f"Voyage embedding failed after retries ({exc.status_code})") from exc
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise EmbeddingError(f"Voyage embedding failed: {exc}") from exc
        if not resp.ok:
            raise EmbeddingError(f"Voyage embedding failed ({resp.status_code}): {resp.text}")
        data = resp.json()["data"]
        return [item["embedding"] for item in sorted(data, key=lambda item: item.get("index", 0))]

    def _send(self, payload: dict, headers: dict) -> requests.Response:
        resp = self.session.post(VOYAGE_URL, json=payload, headers=headers, timeout=60)
        if resp.status_code in RETRYABLE_STATUS:
            raise RetryableStatusError(resp.status_code)
        return resp

    def _log_retry(self, retry_state: RetryCallState) -> None:
        logger.warning(
            "Voyage request failed (%s); retrying in %ss (attempt %s/%s)",
            retry_state.outcome.exception(),
            retry_state.next_action.sleep,
            retry_state.attempt_number,
            self.retries,
        )


_INSTANCES: dict[tuple[str, str, int], EmbeddingModel] = {}


def get_embedding_model(settings: Settings) -> EmbeddingModel:
    """Return a cached embedding model for ``settings``."""
    key = (settings.embedding_backend, settings.embedding_model, settings.embedding_dim)
    if key not in _INSTANCES:
        if settings.embedding_backend == "voyage":
            _INSTANCES[key] = VoyageEmbeddingModel(
                model_name=settings.embedding_model,
                dim=settings.embedding_dim,
                api_key=settings.embedding_api_key,
                batch_size=settings.embedding_batch_size,
            )
        else:
            _INSTANCES[key] = HashedEmbeddingModel(settings.embedding_model, settings.embedding_dim)
    return _INSTANCES[key]


def clear_embedding_models() -> None:
    _INSTANCES.clear()


def _tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def _hash_token(token: str, dim: int) -> int:
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big") % dim


def _normalize(vector: list[float]) -> None:
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return
    inv = 1.0 / norm
    for idx, value in enumerate(vector):
        vector[idx] = value * inv


__all__ = [
    "EmbeddingBatch",
    "EmbeddingModel",
    "HashedEmbeddingModel",
    "VoyageEmbeddingModel",
    "get_embedding_model",
    "clear_embedding_models",
]
