from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from openai import OpenAI

from model_router import ModelConfig

logger = logging.getLogger(__name__)

Message = Dict[str, Any]


class LLMError(RuntimeError):
    pass


class QuotaExhaustedError(LLMError):
    pass


class GenerationError(LLMError):
    """Structured model output could not be used for an action that cannot degrade."""

    def __init__(self, message: str, raw_text: Optional[str] = None) -> None:
        super().__init__(message)
        self.raw_text = raw_text


@dataclass(frozen=True)
class ChatResult:
    text: str
    model: str
    usage: Optional[Dict[str, Any]] = None


def _env(name: str, default: Optional[str] = None) -> str:
    v = os.getenv(name, default)
    if v is None or v == "":
        raise RuntimeError(f"Missing required env var: {name}")
    return v


def _get_openai_client() -> OpenAI:
    api_key = _env("OPENAI_API_KEY")
    base_url = os.getenv("OPENAI_BASE_URL")
    kwargs: Dict[str, Any] = {"api_key": api_key}
    if base_url:
        kwargs["base_url"] = base_url
    return OpenAI(**kwargs)


def _is_quota_error(err: Exception) -> bool:
    code = getattr(err, "code", None) or getattr(err, "status_code", None)
    if isinstance(code, int) and code == 429:
        return True
    name = err.__class__.__name__.lower()
    if "resourceexhausted" in name or "toomanyrequests" in name or "ratelimit" in name:
        return True
    text = str(err).lower()
    return "insufficient_quota" in text or "quota" in text or "rate limit" in text or "429" in text


def _usage_dict(resp: Any) -> Optional[Dict[str, Any]]:
    resp_usage = getattr(resp, "usage", None)
    if resp_usage is None:
        return None
    if isinstance(resp_usage, dict):
        return resp_usage
    dump_fn = getattr(resp_usage, "model_dump", None)
    if callable(dump_fn):
        return dump_fn()
    return {"usage_raw": str(resp_usage)}


def _first_choice_text(resp: Any) -> str:
    choices = getattr(resp, "choices", None) or []
    if not choices:
        raise ValueError("Chat completion returned no choices")
    content = choices[0].message.content
    return content or ""


class LLMClient:
    """
    Thin wrapper over chat completions. The OpenAI client is injected once per
    process; every call takes the ModelConfig chosen by the model router.
    """

    def __init__(
        self,
        client: Optional[Any] = None,
        *,
        timeout_s: Optional[float] = None,
        max_retries: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self.timeout_s = timeout_s if timeout_s is not None else float(os.getenv("OPENAI_TIMEOUT_S", "30"))
        self.max_retries = max_retries if max_retries is not None else int(os.getenv("OPENAI_MAX_RETRIES", "2"))
        self._sleep = sleep

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = _get_openai_client()
        return self._client

    def chat(self, messages: List[Message], config: ModelConfig) -> ChatResult:
        last_err: Optional[Exception] = None
        for attempt in range(self.max_retries + 1):
            try:
                resp = self.client.chat.completions.create(
                    messages=messages,
                    timeout=self.timeout_s,
                    **config.request_kwargs(),
                )
                text = _first_choice_text(resp)
                return ChatResult(text=text, model=config.model, usage=_usage_dict(resp))
            except Exception as e:
                last_err = e
                logger.warning(
                    "Chat completion failed (model=%s attempt=%d/%d): %s",
                    config.model,
                    attempt + 1,
                    self.max_retries + 1,
                    e,
                )
                if attempt >= self.max_retries:
                    break
                self._sleep(0.5 * (2**attempt))

        if last_err is not None and _is_quota_error(last_err):
            raise QuotaExhaustedError(f"LLM quota exhausted for {config.model}: {last_err}") from last_err
        raise LLMError(f"LLM call failed after retries: {last_err}") from last_err


__all__ = [
    "ChatResult",
    "GenerationError",
    "LLMClient",
    "LLMError",
    "QuotaExhaustedError",
]
