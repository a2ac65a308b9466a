"""OpenAI-backed embedding and chat providers."""

import json
import logging
from typing import List, Optional, Sequence

import openai
from openai import OpenAI

from .base import CompletionRequest, EmbeddingProvider, LLMCompletion, LLMProvider
from .exceptions import ProviderResponseError, ProviderTimeoutError, ProviderUnavailableError

logger = logging.getLogger(__name__)


def build_openai_client(api_key: str, timeout_seconds: float = 30.0) -> OpenAI:
    """Create the process-wide OpenAI client.

    SDK-level retries are disabled; retry policy belongs to the callers.
    """
    return OpenAI(api_key=api_key, timeout=timeout_seconds, max_retries=0)


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Embeddings via ``client.embeddings.create``."""

    def __init__(self, client: OpenAI, model: str, dimension: Optional[int] = None):
        self.client = client
        self.model = model
        self.dimension = dimension

    def embed(self, text: str) -> Optional[List[float]]:
        vectors = self.embed_batch([text])
        return vectors[0] if vectors else None

    def embed_batch(self, texts: Sequence[str]) -> Optional[List[List[float]]]:
        if not texts:
            return []
        try:
            response = self.client.embeddings.create(model=self.model, input=list(texts))
        except openai.OpenAIError as e:
            logger.warning(
                f"Embedding request failed: {e}",
                extra={
                    "event": "embedding.provider.failed",
                    "model": self.model,
                    "batch_size": len(texts),
                    "error_type": type(e).__name__,
                },
            )
            return None

        data = sorted(response.data, key=lambda item: item.index)
        if len(data) != len(texts):
            logger.warning(
                "Embedding response size mismatch",
                extra={
                    "event": "embedding.provider.failed",
                    "expected": len(texts),
                    "received": len(data),
                },
            )
            return None
        return [list(item.embedding) for item in data]


class OpenAIChatProvider(LLMProvider):
    """Structured completions through forced function calling.

    The schema is passed as the parameters of a single tool and
    ``tool_choice`` forces the model to call it, so the arguments are the
    structured payload.
    """

    def __init__(self, client: OpenAI, model: str):
        self.client = client
        self.model = model

    def complete(self, request: CompletionRequest) -> LLMCompletion:
        tool = {
            "type": "function",
            "function": {
                "name": request.schema_name,
                "description": "Return the ranked job matches for this user",
                "parameters": request.schema,
            },
        }
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": request.system_prompt},
                    {"role": "user", "content": request.prompt},
                ],
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                tools=[tool],
                tool_choice={"type": "function", "function": {"name": request.schema_name}},
                timeout=request.timeout_seconds,
            )
        except openai.APITimeoutError as e:
            raise ProviderTimeoutError(f"OpenAI request timed out: {e}") from e
        except openai.APIStatusError as e:
            raise ProviderUnavailableError(
                f"OpenAI returned HTTP {e.status_code}: {e.message}", status_code=e.status_code
            ) from e
        except openai.OpenAIError as e:
            raise ProviderUnavailableError(f"OpenAI request failed: {e}") from e

        if not response.choices:
            raise ProviderResponseError("OpenAI response contained no choices")
        message = response.choices[0].message
        tool_calls = message.tool_calls or []
        if not tool_calls:
            raise ProviderResponseError("Model did not call the output function")

        arguments = tool_calls[0].function.arguments or ""
        try:
            payload = json.loads(arguments)
        except json.JSONDecodeError as e:
            raise ProviderResponseError(f"Function arguments are not valid JSON: {e}") from e

        usage = response.usage
        return LLMCompletion(
            payload=payload,
            model=response.model or self.model,
            prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )
