"""Analysis clients: one synchronous model call per unit.

A client turns a unit's payload plus a prompt into generated text and token
usage. Failures are raised as :class:`TransientAnalysisError` (safe to retry)
or :class:`PermanentAnalysisError`; retrying itself is the dispatcher's job,
so the SDK's built-in retries are switched off.
"""

from __future__ import annotations

import base64
import importlib
import logging
from abc import ABC, abstractmethod

import anthropic

from .exceptions import CredentialError, PermanentAnalysisError, TransientAnalysisError
from .models import Analysis, Unit

logger = logging.getLogger("parapdf")

TRANSIENT_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504, 529})

CLIENT_ALIASES = {
    "anthropic": "parapdf.llm_client.AnthropicClient",
    "claude": "parapdf.llm_client.AnthropicClient",
}


class BaseAnalysisClient(ABC):
    @abstractmethod
    def analyze(self, unit: Unit, prompt: str) -> Analysis:
        """Run one call for ``unit``; raise an AnalysisError subclass on failure."""
        raise NotImplementedError


def _looks_rate_limited(message: str) -> bool:
    low = message.lower()
    return "rate_limit" in low or "rate limit" in low or "429" in low or "overloaded" in low


def classify_error(exc: Exception) -> type:
    """Map an SDK exception to TransientAnalysisError or PermanentAnalysisError."""
    if isinstance(exc, (anthropic.RateLimitError, anthropic.InternalServerError, anthropic.APIConnectionError)):
        return TransientAnalysisError
    if isinstance(exc, anthropic.APIStatusError):
        if exc.status_code in TRANSIENT_STATUS_CODES:
            return TransientAnalysisError
        return PermanentAnalysisError
    if _looks_rate_limited(str(exc)):
        return TransientAnalysisError
    return PermanentAnalysisError


class AnthropicClient(BaseAnalysisClient):
    """Messages API client sending a PDF, image or text payload with a prompt."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-3-5-haiku-20241022",
        max_tokens: int = 8192,
        timeout: float = 300.0,
    ) -> None:
        try:
            self._client = anthropic.Anthropic(api_key=api_key, timeout=timeout, max_retries=0)
        except anthropic.AnthropicError as e:
            raise CredentialError(f"Cannot create Anthropic client, {e}") from e
        self._model = model
        self._max_tokens = max_tokens

    @property
    def model(self) -> str:
        return self._model

    @staticmethod
    def build_content(unit: Unit, prompt: str) -> list[dict]:
        """Build the user message content blocks for one unit."""
        if unit.payload_type == "pdf":
            payload_block = {
                "type": "document",
                "source": {
                    "type": "base64",
                    "media_type": "application/pdf",
                    "data": base64.standard_b64encode(unit.payload).decode("ascii"),
                },
            }
        elif unit.payload_type == "image":
            payload_block = {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": "image/png",
                    "data": base64.standard_b64encode(unit.payload).decode("ascii"),
                },
            }
        elif unit.payload_type == "text":
            text = unit.payload or "(this page has no extractable text)"
            payload_block = {"type": "text", "text": f"<document>\n{text}\n</document>"}
        else:
            raise PermanentAnalysisError(f"Unsupported payload type '{unit.payload_type}' for {unit.label}")
        return [payload_block, {"type": "text", "text": prompt}]

    def analyze(self, unit: Unit, prompt: str) -> Analysis:
        content = self.build_content(unit, prompt)
        try:
            response = self._client.messages.create(
                model=self._model,
                max_tokens=self._max_tokens,
                messages=[{"role": "user", "content": content}],
            )
        except anthropic.AnthropicError as e:
            error_cls = classify_error(e)
            raise error_cls(f"API error on {unit.label}, {e}") from e

        text = "".join(
            getattr(block, "text", "") for block in response.content
            if getattr(block, "type", None) == "text"
        ).strip()
        usage = response.usage
        return Analysis(
            text=text,
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
        )


def normalize_client_alias(name: str) -> str:
    """
    Allow short aliases (case-insensitive).
    Returns a fully qualified dotted path 'module.Class'.
    """
    if not name:
        return name
    original = name.strip().strip('"\'')
    return CLIENT_ALIASES.get(original.lower(), original)


def load_client_class(dotted: str) -> type:
    mod_path, _, attr = normalize_client_alias(dotted).rpartition(".")
    if not mod_path or not attr:
        raise ImportError(f"Invalid client path, {dotted}")
    mod = importlib.import_module(mod_path)
    try:
        return getattr(mod, attr)
    except AttributeError as e:
        raise ImportError(f"Client class not found, {dotted}") from e
