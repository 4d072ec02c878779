"""
Tests for the Ollama REST backend and prompt construction.

The HTTP session is a MagicMock; no server is contacted.
"""

from unittest.mock import MagicMock

import pytest

from sumup.errors import BackendHTTPError, MissingApiKeyError
from sumup.summarization import OllamaBackend, SummaryPersona
from sumup.summarization.backend import build_prompt


def mock_session(status_code=200, payload=None, text=""):
    session = MagicMock()
    response = session.post.return_value
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else {"response": "  A short summary.  "}
    response.text = text
    return session


class TestOllamaBackend:
    """Request shape and response handling."""

    @pytest.mark.asyncio
    async def test_summarize_posts_generate_request(self):
        session = mock_session()
        backend = OllamaBackend(api_base="http://ollama:11434/", model_name="gemma3:1b", api_key=None, session=session)

        summary = await backend.summarize("Some long text.", "actionable")

        assert summary == "A short summary."
        url = session.post.call_args.args[0]
        kwargs = session.post.call_args.kwargs
        assert url == "http://ollama:11434/api/generate"
        assert kwargs["json"]["model"] == "gemma3:1b"
        assert kwargs["json"]["stream"] is False
        assert "Some long text." in kwargs["json"]["prompt"]
        assert "action items" in kwargs["json"]["prompt"]
        assert kwargs["headers"] == {}

    def test_api_key_sent_as_bearer(self):
        session = mock_session()
        OllamaBackend(api_key="secret", session=session).generate_text("prompt")
        assert session.post.call_args.kwargs["headers"] == {"Authorization": "Bearer secret"}

    def test_missing_required_key(self):
        session = mock_session()
        backend = OllamaBackend(api_key=None, require_api_key=True, session=session)
        with pytest.raises(MissingApiKeyError):
            backend.generate_text("prompt")
        session.post.assert_not_called()

    def test_non_200_raises_http_error(self):
        backend = OllamaBackend(session=mock_session(status_code=503, text="model is loading"))
        with pytest.raises(BackendHTTPError) as exc_info:
            backend.generate_text("prompt")
        assert exc_info.value.status_code == 503
        assert exc_info.value.body == "model is loading"

    def test_missing_response_field_is_empty(self):
        backend = OllamaBackend(session=mock_session(payload={}))
        assert backend.generate_text("prompt") == ""

    @pytest.mark.asyncio
    async def test_consolidate_uses_merge_prompt(self):
        session = mock_session()
        await OllamaBackend(session=session).consolidate("part one\n\npart two", "balanced")
        assert "Merge them into a single summary" in session.post.call_args.kwargs["json"]["prompt"]


class TestPrompts:

    def test_unknown_style_falls_back_to_balanced(self):
        assert "balanced summary" in build_prompt("text", "no-such-style")

    def test_persona_api_styles(self):
        assert SummaryPersona.STUDY.api_style == "educational"
        assert SummaryPersona.QUICK.display_name == "Quick Read"
        assert SummaryPersona.from_api_style("precise") == SummaryPersona.LEGAL
        assert SummaryPersona.from_api_style("unknown") == SummaryPersona.GENERAL
