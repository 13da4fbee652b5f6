"""
Recommendation service contract and its Claude implementation.

The assistant only knows RecommendationRequest -> str. Everything
provider-specific (prompt wording, message format, model choice) stays in
ClaudeRecommendationService.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from app.config import settings
from app.core.errors import RecommendationUnavailable
from app.core.geo import Location
from app.infra.claude import ClaudeClient, ClaudeClientError

logger = logging.getLogger(__name__)


@dataclass
class RecommendationRequest:
    """Everything the external reasoner gets for one patient message."""

    doctor_roster: list[dict]
    conversation_history: list[dict]
    new_message: str
    requester_location: Optional[Location] = None

    def to_dict(self) -> dict:
        return {
            "doctor_roster": self.doctor_roster,
            "conversation_history": self.conversation_history,
            "new_message": self.new_message,
            "requester_location": (
                self.requester_location.to_dict() if self.requester_location else None
            ),
        }


class RecommendationService(ABC):
    """External service that turns a conversation into a recommendation."""

    @abstractmethod
    async def recommend(self, request: RecommendationRequest) -> str:
        """
        Produce the assistant's reply.

        Raises:
            ExternalServiceError: Service unavailable, failed or timed out
        """
        pass


SYSTEM_PROMPT = """You are a friendly assistant that helps patients find the right doctor.

Keep the conversation casual. Ask about symptoms or the kind of specialist the
patient needs, and about preferences such as visit type or availability,
without making it feel like a form.

When you know enough, recommend a doctor from the roster below based on:
1. Specialty: match the patient's needs with the right specialist.
2. Location: prefer doctors closest to the patient.
3. Profile: rating, verification and consultation fee.

Only recommend doctors that appear in the roster. If the patient has concerns,
address them and offer alternatives.

Available doctors (JSON):
{roster}

{location}"""


def _location_line(location: Optional[Location]) -> str:
    if location is None:
        return "The patient's location is unknown; ask for their area if distance matters."
    return (
        f"The patient is located at latitude {location.latitude}, "
        f"longitude {location.longitude}. Use these coordinates for distances."
    )


def to_claude_messages(history: list[dict], new_message: str) -> list[dict]:
    """Convert turns to Anthropic messages, merging same-role neighbours.

    Consecutive patient turns happen after a failed call; the API expects
    alternating roles so they are joined into one user message.
    """
    messages: list[dict] = []
    turns = history + [{"role": "patient", "text": new_message}]

    for turn in turns:
        role = "assistant" if turn["role"] == "assistant" else "user"
        if messages and messages[-1]["role"] == role:
            messages[-1]["content"] += "\n\n" + turn["text"]
        else:
            messages.append({"role": role, "content": turn["text"]})

    return messages


class ClaudeRecommendationService(RecommendationService):
    """RecommendationService backed by the Anthropic Messages API."""

    def __init__(
        self,
        client: Optional[ClaudeClient] = None,
        timeout: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ):
        """
        Initialize the service.

        Args:
            client: Claude client instance. If None, uses singleton.
            timeout: Seconds allowed per recommendation (defaults to settings)
            max_tokens: Reply token budget (defaults to settings)
        """
        self._client = client
        self.timeout = timeout if timeout is not None else settings.recommendation_timeout_seconds
        self.max_tokens = max_tokens or settings.recommendation_max_tokens

    def _get_client(self) -> ClaudeClient:
        """Get Claude client, creating if necessary."""
        if self._client is None:
            try:
                self._client = ClaudeClient.get_instance()
            except ClaudeClientError as e:
                raise RecommendationUnavailable(f"Recommendation service not configured: {e}") from e
        return self._client

    def build_system_prompt(self, request: RecommendationRequest) -> str:
        return SYSTEM_PROMPT.format(
            roster=json.dumps(request.doctor_roster, default=str),
            location=_location_line(request.requester_location),
        )

    async def recommend(self, request: RecommendationRequest) -> str:
        client = self._get_client()
        messages = to_claude_messages(request.conversation_history, request.new_message)

        try:
            response = await asyncio.wait_for(
                client.generate(
                    messages=messages,
                    system_prompt=self.build_system_prompt(request),
                    max_tokens=self.max_tokens,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Recommendation timed out after {self.timeout}s")
            raise RecommendationUnavailable("Recommendation service timed out") from e
        except ClaudeClientError as e:
            logger.error(f"Recommendation failed: {e}")
            raise RecommendationUnavailable("Recommendation service unavailable") from e

        if not response.content.strip():
            raise RecommendationUnavailable("Recommendation service returned an empty reply")

        logger.debug(
            f"Recommendation generated: model={response.model} "
            f"tokens={response.input_tokens}/{response.output_tokens} "
            f"latency={response.latency_ms:.0f}ms"
        )
        return response.content
