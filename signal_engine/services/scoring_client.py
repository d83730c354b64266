"""
Scoring Task Client - Live Signal Engine
signal_engine/services/scoring_client.py

Contract: run(ScoringTaskRequest) -> dict, or raise ScoringTaskException.

ChatCompletionScoringClient talks to any OpenAI-compatible
/chat/completions endpoint over httpx.AsyncClient and tolerates JSON wrapped
in markdown fences.
"""

import json
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
import structlog

from signal_engine.config import Settings
from signal_engine.core.exceptions import (
    MalformedTaskOutputException,
    ScoringTaskException,
    ScoringTaskTimeoutException,
)
from signal_engine.pipelines.tasks import ScoringTaskRequest
from signal_engine.services.prompts import system_prompt, user_prompt

logger = structlog.get_logger(__name__)

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*|\s*```\s*$", re.IGNORECASE)


def strip_json_fences(content: str) -> str:
    """Remove a leading ```json / ``` fence and a trailing ``` fence."""
    return _FENCE_RE.sub("", content or "").strip()


def parse_task_json(task: str, content: str) -> Dict[str, Any]:
    try:
        data = json.loads(strip_json_fences(content))
    except (json.JSONDecodeError, TypeError) as e:
        raise MalformedTaskOutputException(task, f"invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedTaskOutputException(task, f"expected object, got {type(data).__name__}")
    return data


class ScoringTaskClient(ABC):
    """A black box that turns a text window + rubric slice into small JSON."""

    @abstractmethod
    async def run(self, request: ScoringTaskRequest) -> Dict[str, Any]:
        ...

    async def aclose(self) -> None:
        return None


class ChatCompletionScoringClient(ScoringTaskClient):
    """OpenAI-compatible chat-completions client (JSON response format)."""

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        headers = {"Content-Type": "application/json"}
        if settings.OPENAI_API_KEY is not None:
            headers["Authorization"] = f"Bearer {settings.OPENAI_API_KEY.get_secret_value()}"
        self._client = http_client or httpx.AsyncClient(
            base_url=settings.OPENAI_BASE_URL,
            headers=headers,
            timeout=settings.SCORING_HTTP_TIMEOUT,
        )

    async def run(self, request: ScoringTaskRequest) -> Dict[str, Any]:
        body = {
            "model": self.settings.SCORING_MODEL,
            "temperature": self.settings.SCORING_TEMPERATURE,
            "max_tokens": request.max_output_tokens,
            "response_format": {"type": "json_object"},
            "messages": [
                {
                    "role": "system",
                    "content": system_prompt(request.task, request.rubric_slice, request.context),
                },
                {"role": "user", "content": user_prompt(request.text)},
            ],
        }

        try:
            response = await self._client.post("/chat/completions", json=body)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise ScoringTaskTimeoutException(request.task, self.settings.SCORING_HTTP_TIMEOUT) from e
        except httpx.HTTPStatusError as e:
            raise ScoringTaskException(
                request.task, f"HTTP {e.response.status_code} from scoring provider"
            ) from e
        except httpx.HTTPError as e:
            raise ScoringTaskException(request.task, f"{type(e).__name__}: {e}") from e

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise MalformedTaskOutputException(request.task, "unexpected completion payload") from e

        data = parse_task_json(request.task, content)
        logger.debug("task_completed", task=request.task, keys=sorted(data))
        return data

    async def aclose(self) -> None:
        await self._client.aclose()
