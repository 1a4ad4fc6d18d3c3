from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import openai
from openai import OpenAI

from lesson_tutor.core.config import settings
from lesson_tutor.core.errors import GenerationUnavailable


logger = logging.getLogger(__name__)

# details["reason"] when the service answered but produced no text
EMPTY_RESPONSE = "empty_response"


def llm_available() -> bool:
    """True when a generation backend is configured.

    - OpenAI API: set OPENAI_API_KEY
    - OpenAI-compatible servers (gateways, Ollama/LM Studio): set OPENAI_BASE_URL (key may be blank)
    """
    return bool((settings.OPENAI_API_KEY or "").strip() or (settings.OPENAI_BASE_URL or "").strip())


def _base_url() -> str:
    return (settings.OPENAI_BASE_URL or "").strip()


def _is_ollama_provider() -> bool:
    """Ollama's OpenAI compatibility is strongest on /v1/chat/completions; skip the Responses API there."""
    bu = _base_url().lower()
    return bool(bu and ("ollama" in bu or "11434" in bu))


def _extract_response_text(resp: Any) -> str:
    """Best-effort extraction of text from a Responses API object."""
    text = getattr(resp, "output_text", None)
    if isinstance(text, str) and text.strip():
        return text.strip()

    parts: List[str] = []
    for item in getattr(resp, "output", None) or []:
        if str(getattr(item, "type", "")) != "message":
            continue
        for c in getattr(item, "content", None) or []:
            if str(getattr(c, "type", "")) in {"output_text", "text"}:
                val = getattr(c, "text", None)
                if isinstance(val, str) and val.strip():
                    parts.append(val.strip())
    return "\n".join(parts).strip()


def _extract_chat_completion_text(res: Any) -> str:
    """Assistant text from a Chat Completions response.

    Some OpenAI-compatible servers return ``message.content`` as a list of
    content parts instead of a string; both shapes are handled.
    """
    try:
        msg = res.choices[0].message
    except (AttributeError, IndexError, TypeError):
        return ""

    content = getattr(msg, "content", None)
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        out = []
        for p in content:
            p_text = p.get("text") if isinstance(p, dict) else getattr(p, "text", None)
            if isinstance(p_text, str) and p_text.strip():
                out.append(p_text.strip())
        return "\n".join(out).strip()
    return ""


class GenerationClient:
    """Single synchronous call to the generation service.

    No retries beyond the SDK's own ``max_retries``; every failure surfaces as
    ``GenerationUnavailable``.
    """

    def __init__(
        self,
        *,
        model: Optional[str] = None,
        timeout_sec: Optional[float] = None,
        client: Any = None,
    ):
        self.model = model or settings.OPENAI_CHAT_MODEL
        self.timeout_sec = float(timeout_sec or settings.OPENAI_HTTP_TIMEOUT_SEC)
        self._client = client

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client

        if not llm_available():
            raise GenerationUnavailable(
                "Generation service is not configured. Set OPENAI_API_KEY or OPENAI_BASE_URL in backend/.env",
                details={"reason": "missing_credential"},
            )

        base_url = _base_url() or None
        api_key = (settings.OPENAI_API_KEY or "").strip() or None
        # Local OpenAI-compatible servers accept any key.
        if not api_key and base_url:
            api_key = "ollama"

        kwargs: Dict[str, Any] = {
            "api_key": api_key,
            "timeout": self.timeout_sec,
            "max_retries": int(settings.OPENAI_MAX_RETRIES),
        }
        if base_url:
            kwargs["base_url"] = base_url
        self._client = OpenAI(**kwargs)
        return self._client

    def _responses(self, client: Any, messages: List[Dict[str, str]], max_output_tokens: int, temperature: float) -> str:
        resp = client.responses.create(
            model=self.model,
            input=messages,
            max_output_tokens=int(max_output_tokens),
            temperature=float(temperature),
        )
        return _extract_response_text(resp)

    def _chat(self, client: Any, messages: List[Dict[str, str]], max_output_tokens: int, temperature: float) -> str:
        res = client.chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=int(max_output_tokens),
            temperature=float(temperature),
        )
        return _extract_chat_completion_text(res)

    def complete(self, messages: List[Dict[str, str]], *, max_output_tokens: int, temperature: float) -> str:
        client = self._get_client()
        prefer_chat = _is_ollama_provider() or not hasattr(client, "responses")

        try:
            text = ""
            if not prefer_chat:
                try:
                    text = self._responses(client, messages, max_output_tokens, temperature)
                except (openai.BadRequestError, openai.NotFoundError) as e:
                    # Gateway without Responses API support.
                    logger.info("Responses API rejected (%s); using chat.completions", type(e).__name__)
                    prefer_chat = True
            if prefer_chat:
                text = self._chat(client, messages, max_output_tokens, temperature)
        except openai.OpenAIError as e:
            logger.warning("Generation call failed model=%s: %s: %s", self.model, type(e).__name__, str(e)[:200])
            raise GenerationUnavailable(details={"reason": type(e).__name__}) from e

        text = (text or "").strip()
        if not text:
            logger.warning("Generation returned no text model=%s", self.model)
            raise GenerationUnavailable(details={"reason": EMPTY_RESPONSE})

        logger.info("Generation call ok model=%s chars=%d", self.model, len(text))
        return text

    __call__ = complete
