"""OpenAI-backed resume structuring and tailoring behind an admission window and bounded retry."""

import asyncio
import re
from functools import lru_cache
from typing import Any

import openai
import orjson
from fastapi import status
from openai import AsyncOpenAI
from pydantic import ValidationError

from cvpro.core.config import get_settings
from cvpro.core.exceptions import AIQuotaExceededError, AIResponseError, AIUnavailableError, WorkFailedError
from cvpro.core.logging import get_logger
from cvpro.core.retry import RetryPolicy, linear_backoff, retry_async
from cvpro.schemas.resume import ResumeConfig, ResumeData
from cvpro.services import prompts

log = get_logger(__name__)

_DAILY_QUOTA = re.compile(r"per day|daily|RequestsPerDay", re.IGNORECASE)


def is_hard_quota(e: Exception) -> bool:
    """Plan or daily quota exhausted: retrying cannot help."""
    if not isinstance(e, openai.RateLimitError):
        return False
    code = getattr(e, "code", None)
    if code == "insufficient_quota":
        return True
    message = str(e)
    return "quota" in message.lower() and bool(_DAILY_QUOTA.search(message))


def is_transient(e: Exception) -> bool:
    if is_hard_quota(e):
        return False
    return isinstance(e, (openai.RateLimitError, openai.APIConnectionError, openai.InternalServerError))


class ResumeAI:
    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        model: str | None = None,
        max_concurrency: int | None = None,
        policy: RetryPolicy | None = None,
        sleep=asyncio.sleep,
    ):
        s = get_settings()
        self._client = client or AsyncOpenAI(api_key=s.openai_api_key or None, timeout=s.openai_timeout, max_retries=0)
        self.model = model or s.openai_model
        self._limiter = asyncio.Semaphore(max_concurrency or s.llm_max_concurrency)
        self.policy = policy or RetryPolicy(max_attempts=s.llm_max_attempts, backoff=linear_backoff(s.llm_backoff_seconds))
        self._sleep = sleep

    async def _complete_json(self, system: str, user: str, label: str) -> dict[str, Any]:
        async def _attempt() -> str:
            # Slot is held per attempt, not across backoff sleeps
            async with self._limiter:
                resp = await self._client.chat.completions.create(
                    model=self.model,
                    messages=[{"role": "system", "content": system}, {"role": "user", "content": user}],
                    response_format={"type": "json_object"},
                    temperature=0.3,
                )
            return resp.choices[0].message.content or ""

        try:
            content = await retry_async(_attempt, self.policy, should_retry=is_transient, sleep=self._sleep, label=label)
        except openai.OpenAIError as e:
            if is_hard_quota(e):
                log.warning("llm_quota_exhausted", label=label, model=self.model)
                raise AIQuotaExceededError() from e
            if is_transient(e):
                log.warning("llm_unavailable", label=label, model=self.model, error=type(e).__name__)
                raise AIUnavailableError() from e
            log.error("llm_request_failed", label=label, model=self.model, error=str(e))
            raise WorkFailedError(
                "AI request failed. Please contact support if this keeps happening.",
                code="AI_FAILED",
                status_code=status.HTTP_502_BAD_GATEWAY,
            ) from e
        try:
            data = orjson.loads(content)
        except orjson.JSONDecodeError as e:
            log.warning("llm_bad_json", label=label, model=self.model)
            raise AIResponseError() from e
        if not isinstance(data, dict):
            raise AIResponseError()
        return data

    async def structure(self, text: str) -> ResumeData:
        """Raw resume text -> ResumeData."""
        if not text.strip():
            raise AIResponseError("Resume text is empty")
        data = await self._complete_json(prompts.STRUCTURE_SYSTEM, prompts.structure_user(text), "structure")
        return _to_resume(data)

    async def tailor(self, base: ResumeData, job_description: str, config: ResumeConfig) -> ResumeData:
        data = await self._complete_json(
            prompts.TAILOR_SYSTEM, prompts.tailor_user(base, job_description, config), "tailor"
        )
        tailored = _to_resume(data)
        tailored.profile_image = base.profile_image
        return tailored


def _to_resume(data: dict[str, Any]) -> ResumeData:
    try:
        return ResumeData.model_validate(data)
    except ValidationError as e:
        raise AIResponseError() from e


@lru_cache
def get_resume_ai() -> ResumeAI:
    return ResumeAI()
