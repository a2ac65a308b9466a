"""Provider interfaces for embeddings and structured LLM completions.

Concrete clients are constructed once per process and injected into the
embedding service and the AI scorer, so tests substitute fakes freely.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence


@dataclass(frozen=True)
class CompletionRequest:
    """One structured-output LLM call."""

    system_prompt: str
    prompt: str
    schema: Dict[str, Any]
    schema_name: str
    temperature: float
    max_tokens: int
    timeout_seconds: float


@dataclass(frozen=True)
class LLMCompletion:
    """Parsed result of a structured-output call."""

    payload: Any
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0


class EmbeddingProvider(ABC):
    """Turns text into vectors. Failures are reported as ``None``, never raised."""

    model: str = "unknown"

    @abstractmethod
    def embed(self, text: str) -> Optional[List[float]]:
        """Embed one text, or return None if the provider failed."""

    def embed_batch(self, texts: Sequence[str]) -> Optional[List[List[float]]]:
        """Embed several texts in order; None if any of them failed."""
        vectors = []
        for text in texts:
            vector = self.embed(text)
            if vector is None:
                return None
            vectors.append(vector)
        return vectors


class LLMProvider(ABC):
    """Structured-output completion client."""

    model: str = "unknown"

    @abstractmethod
    def complete(self, request: CompletionRequest) -> LLMCompletion:
        """Run one completion constrained to ``request.schema``.

        Raises:
            ProviderTimeoutError: The call exceeded ``request.timeout_seconds``
            ProviderResponseError: The output could not be parsed as the schema
            ProviderUnavailableError: Transport, auth, rate-limit or server failure
        """
