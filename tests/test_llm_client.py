"""Tests for llm_client.py: error classification, request content and client loading."""

from __future__ import annotations

import base64
from types import SimpleNamespace
from unittest.mock import MagicMock

import anthropic
import httpx
import pytest

from parapdf.exceptions import PermanentAnalysisError, TransientAnalysisError
from parapdf.llm_client import (
    AnthropicClient,
    BaseAnalysisClient,
    classify_error,
    load_client_class,
    normalize_client_alias,
)
from parapdf.models import Unit

REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def _status_error(cls, status: int):
    response = httpx.Response(status, request=REQUEST)
    return cls(f"Error code: {status}", response=response, body=None)


def _unit(payload, payload_type: str) -> Unit:
    return Unit(index=0, start_page=0, end_page=0, payload=payload, payload_type=payload_type, label="page 1")


class TestClassifyError:

    def test_rate_limit_is_transient(self):
        assert classify_error(_status_error(anthropic.RateLimitError, 429)) is TransientAnalysisError

    def test_server_error_is_transient(self):
        assert classify_error(_status_error(anthropic.InternalServerError, 500)) is TransientAnalysisError

    def test_overloaded_status_is_transient(self):
        assert classify_error(_status_error(anthropic.APIStatusError, 529)) is TransientAnalysisError

    def test_connection_error_is_transient(self):
        assert classify_error(anthropic.APIConnectionError(request=REQUEST)) is TransientAnalysisError

    @pytest.mark.parametrize("cls, status", [
        (anthropic.BadRequestError, 400),
        (anthropic.AuthenticationError, 401),
        (anthropic.NotFoundError, 404),
    ])
    def test_client_errors_are_permanent(self, cls, status):
        assert classify_error(_status_error(cls, status)) is PermanentAnalysisError

    def test_message_fallback(self):
        assert classify_error(RuntimeError("rate_limit_error: slow down")) is TransientAnalysisError
        assert classify_error(RuntimeError("invalid pdf")) is PermanentAnalysisError


class TestBuildContent:

    def test_pdf_block(self):
        content = AnthropicClient.build_content(_unit(b"%PDF-1.7", "pdf"), "describe")
        assert content[0]["type"] == "document"
        assert content[0]["source"]["media_type"] == "application/pdf"
        assert base64.standard_b64decode(content[0]["source"]["data"]) == b"%PDF-1.7"
        assert content[1] == {"type": "text", "text": "describe"}

    def test_image_block(self):
        content = AnthropicClient.build_content(_unit(b"\x89PNG", "image"), "describe")
        assert content[0]["type"] == "image"
        assert content[0]["source"]["media_type"] == "image/png"

    def test_text_block(self):
        content = AnthropicClient.build_content(_unit("Bolt M8", "text"), "describe")
        assert "Bolt M8" in content[0]["text"]

    def test_empty_text_placeholder(self):
        content = AnthropicClient.build_content(_unit("", "text"), "describe")
        assert "no extractable text" in content[0]["text"]

    def test_error_unit_rejected(self):
        with pytest.raises(PermanentAnalysisError):
            AnthropicClient.build_content(_unit("extraction failed", "error"), "describe")


class TestAnalyze:

    @pytest.fixture
    def client(self):
        c = AnthropicClient(api_key="sk-test", model="claude-3-5-haiku-20241022", max_tokens=1024)
        c._client = MagicMock()
        return c

    def test_success(self, client):
        client._client.messages.create.return_value = SimpleNamespace(
            content=[SimpleNamespace(type="text", text="# Page 1\nA flange. ")],
            usage=SimpleNamespace(input_tokens=1200, output_tokens=85),
        )
        analysis = client.analyze(_unit("flange", "text"), "describe")

        assert analysis.text == "# Page 1\nA flange."
        assert (analysis.input_tokens, analysis.output_tokens) == (1200, 85)
        kwargs = client._client.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-3-5-haiku-20241022"
        assert kwargs["max_tokens"] == 1024
        assert kwargs["messages"][0]["role"] == "user"

    def test_rate_limit_raises_transient(self, client):
        client._client.messages.create.side_effect = _status_error(anthropic.RateLimitError, 429)
        with pytest.raises(TransientAnalysisError, match="page 1"):
            client.analyze(_unit("x", "text"), "describe")

    def test_bad_request_raises_permanent(self, client):
        client._client.messages.create.side_effect = _status_error(anthropic.BadRequestError, 400)
        with pytest.raises(PermanentAnalysisError):
            client.analyze(_unit("x", "text"), "describe")

    def test_sdk_retries_disabled(self):
        c = AnthropicClient(api_key="sk-test")
        assert c._client.max_retries == 0


class TestLoading:

    def test_alias(self):
        assert normalize_client_alias("Anthropic") == "parapdf.llm_client.AnthropicClient"
        assert normalize_client_alias("pkg.mod.Client") == "pkg.mod.Client"

    def test_load_alias(self):
        cls = load_client_class("claude")
        assert cls is AnthropicClient
        assert issubclass(cls, BaseAnalysisClient)

    def test_load_missing_class(self):
        with pytest.raises(ImportError):
            load_client_class("parapdf.llm_client.NoSuchClient")

    def test_load_bad_path(self):
        with pytest.raises(ImportError):
            load_client_class("noclassname")
