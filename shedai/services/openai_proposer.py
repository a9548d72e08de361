"""OpenAI-backed placement proposer."""
from __future__ import annotations

import logging
from typing import Any, Optional

import openai

from shedai.core.config import Settings, settings
from shedai.engine.errors import ProposerResponseError, ProposerUnavailableError
from shedai.engine.proposer import NullProposer, ProposalRequest, Proposer, build_messages
from shedai.observability.tracing import trace

logger = logging.getLogger(__name__)


class OpenAIProposer:
    """Sends the placement request to a chat completion model in JSON mode.

    Transport retries are handled by the OpenAI client itself
    (``max_retries`` / ``timeout``); anything that still fails surfaces as
    ``ProposerUnavailableError`` so the engine can degrade to repair and backfill.
    """

    enabled = True

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        temperature: float = 0.2,
        timeout: float = 30.0,
        max_retries: int = 2,
        client: Any | None = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.client = client or openai.OpenAI(api_key=api_key, timeout=timeout, max_retries=max_retries)

    def complete(self, request: ProposalRequest, *, feedback: Optional[str] = None) -> str:
        metadata = {
            "model": self.model,
            "tasks": len(request.tasks),
            "free_windows": len(request.free_windows),
            "retry_feedback": feedback or "",
        }
        with trace("proposer.complete", metadata=metadata) as proposer_trace:
            try:
                completion = self.client.chat.completions.create(
                    model=self.model,
                    response_format={"type": "json_object"},
                    temperature=self.temperature,
                    messages=build_messages(request, feedback),
                )
            except openai.APIError as exc:
                logger.warning("OpenAI request failed: %s", exc)
                raise ProposerUnavailableError(str(exc)) from exc

            if not completion.choices:
                raise ProposerResponseError("completion had no choices")
            content = completion.choices[0].message.content or ""
            if proposer_trace:
                proposer_trace.update(metadata={**metadata, "llm_output_text": content[:500]})
        return content


def get_proposer(config: Settings | None = None) -> Proposer:
    """Return the configured proposer, or a disabled one when no API key is set."""
    config = config or settings
    if not config.openai_api_key:
        logger.info("OPENAI_API_KEY missing; schedules will be built by repair and backfill only.")
        return NullProposer()
    return OpenAIProposer(
        api_key=config.openai_api_key,
        model=config.openai_model,
        temperature=config.openai_temperature,
        timeout=config.proposer_timeout_seconds,
        max_retries=config.proposer_max_retries,
    )
