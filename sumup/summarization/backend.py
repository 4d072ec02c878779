"""
Summarization Backends

SummarizationBackend is the contract the request orchestrator talks to:
``await backend.summarize(text, style) -> str``. Backends raise their own
exceptions (BackendHTTPError, MissingApiKeyError, requests errors) and never
retry; the orchestrator classifies and retries.

OllamaBackend posts to an Ollama-compatible ``/api/generate`` endpoint with
``requests`` in a worker thread so the event loop never blocks.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from enum import Enum

import requests

from sumup.config import (
    API_BASE,
    API_KEY,
    API_KEY_REQUIRED,
    BACKEND_CONTEXT_WINDOW,
    MODEL_NAME,
    REQUEST_TIMEOUT_SECONDS,
)
from sumup.errors import BackendHTTPError, MissingApiKeyError
from sumup.logging_config import debug_log, warning


class SummaryPersona(Enum):
    """Summarization styles offered to the user: (display name, description, api style)."""
    GENERAL = ("General", "Balanced summary for general use", "balanced")
    STUDY = ("Study", "Key concepts and learning points", "educational")
    BUSINESS = ("Business", "Action items and insights", "actionable")
    LEGAL = ("Legal", "Key terms and implications", "precise")
    TECHNICAL = ("Technical", "Technical details and specifications", "detailed")
    QUICK = ("Quick Read", "Ultra-concise key points only", "minimal")

    def __init__(self, display_name: str, description: str, api_style: str):
        self.display_name = display_name
        self.description = description
        self.api_style = api_style

    @classmethod
    def from_api_style(cls, api_style: str) -> "SummaryPersona":
        for persona in cls:
            if persona.api_style == api_style:
                return persona
        return cls.GENERAL


_STYLE_INSTRUCTIONS = {
    "balanced": "Write a clear, balanced summary covering the main points.",
    "educational": "Summarize as study notes: key concepts, definitions and what to remember.",
    "actionable": "Lead with key findings, then list decisions, action items and deadlines.",
    "precise": "Summarize key terms, obligations and implications precisely, without paraphrasing away meaning.",
    "detailed": "Summarize technical details, specifications and figures accurately.",
    "minimal": "Give only the essential points in a few short bullet points.",
}


class SummarizationBackend(ABC):
    """Contract for anything that can turn text into a summary."""

    @abstractmethod
    async def summarize(self, text: str, style: str) -> str:
        """
        Summarize text in the given style.

        Args:
            text: Source text (a whole document or one chunk).
            style: Persona api style, e.g. "balanced".

        Returns:
            Summary text.
        """

    async def consolidate(self, partial_summaries: str, style: str) -> str:
        """Merge concatenated part summaries into one; defaults to summarize()."""
        return await self.summarize(partial_summaries, style)


def build_prompt(text: str, style: str, consolidate: bool = False) -> str:
    instruction = _STYLE_INSTRUCTIONS.get(style, _STYLE_INSTRUCTIONS["balanced"])
    if consolidate:
        task = ("The text below contains summaries of consecutive parts of one document. "
                "Merge them into a single summary, removing repetition between parts.")
    else:
        task = "Summarize the text below."
    return (
        f"{task}\n{instruction}\n"
        "Respond in the language of the source text. Do not add information that is not in the text.\n\n"
        f"---\n{text}\n---"
    )


class OllamaBackend(SummarizationBackend):
    """
    Ollama REST API backend.

    Args:
        api_base: Server base URL (default from SUMUP_API_BASE).
        model_name: Model to generate with (default from SUMUP_MODEL).
        api_key: Bearer token, sent when set.
        require_api_key: Fail with MissingApiKeyError when no key is set.
        timeout: HTTP timeout in seconds.
        max_tokens: Generation limit (num_predict).
    """

    def __init__(
        self,
        api_base: str = API_BASE,
        model_name: str = MODEL_NAME,
        api_key: str | None = API_KEY,
        require_api_key: bool = API_KEY_REQUIRED,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        max_tokens: int = 500,
        session: requests.Session | None = None,
    ):
        self.api_base = api_base.rstrip('/')
        self.model_name = model_name
        self.api_key = api_key
        self.require_api_key = require_api_key
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.session = session or requests.Session()

    async def summarize(self, text: str, style: str) -> str:
        return await asyncio.to_thread(self.generate_text, build_prompt(text, style))

    async def consolidate(self, partial_summaries: str, style: str) -> str:
        return await asyncio.to_thread(self.generate_text, build_prompt(partial_summaries, style, consolidate=True))

    def generate_text(self, prompt: str) -> str:
        """
        Generate text using the Ollama REST API (blocking).

        Raises:
            MissingApiKeyError: A key is required and none is configured.
            BackendHTTPError: The server answered with a non-200 status.
            requests.RequestException: Connection problems and timeouts.
        """
        if self.require_api_key and not self.api_key:
            raise MissingApiKeyError("Summarization backend requires an API key (set SUMUP_API_KEY)")

        # 1 token ~ 4 chars
        estimated_tokens = len(prompt) // 4
        if estimated_tokens > BACKEND_CONTEXT_WINDOW - 300:
            warning(
                f"[BACKEND] Prompt ({estimated_tokens} estimated tokens) may be truncated. "
                f"Context window is {BACKEND_CONTEXT_WINDOW} tokens."
            )

        payload = {
            "model": self.model_name,
            "prompt": prompt,
            "stream": False,
            "options": {
                "num_ctx": BACKEND_CONTEXT_WINDOW,
                "num_predict": self.max_tokens,
            },
        }
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

        debug_log(f"[BACKEND] POST {self.api_base}/api/generate model={self.model_name} prompt={len(prompt)} chars")
        start_time = time.perf_counter()
        response = self.session.post(
            f"{self.api_base}/api/generate",
            json=payload,
            headers=headers,
            timeout=self.timeout,
        )
        elapsed = time.perf_counter() - start_time

        if response.status_code != 200:
            debug_log(f"[BACKEND] HTTP {response.status_code} after {elapsed:.1f}s")
            raise BackendHTTPError(response.status_code, response.text)

        generated = response.json().get("response", "").strip()
        debug_log(f"[BACKEND] Generated {len(generated)} chars in {elapsed:.1f}s")
        return generated
