"""LLM reply generator."""
import json
import logging
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from receptionist.core.config import settings
from receptionist.core.exceptions import GenerationError
from receptionist.services.call_session.models import ReplyContext
from receptionist.services.reply.base import Reply, ReplyGenerator
from receptionist.services.reply.business import BusinessProfile, BusinessRepository

logger = logging.getLogger(__name__)


def get_system_prompt(profile: BusinessProfile) -> str:
    """Build the system prompt for a business."""
    return f"""You are a friendly phone receptionist for {profile.business_name}.

Business information:
{profile.get_summary_text()}

Respond naturally and helpfully. Your reply will be spoken aloud on a phone
call, so keep it conversational, under 50 words, and avoid lists or symbols.

Always respond with a JSON object:
{{"response": "<what to say to the caller>", "intent": "<one word: booking, hours, location, delivery, menu, payment, generic or other>"}}"""


class LLMReplyGenerator(ReplyGenerator):
    """Service for LLM-powered receptionist replies."""

    def __init__(
        self,
        business_repository: BusinessRepository,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        temperature: float = 0.7,
    ):
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key)
        self.business_repository = business_repository
        self.model = model or settings.reply_model
        self.temperature = temperature

    async def generate_reply(self, text: str, context: ReplyContext) -> Reply:
        """
        Generate a reply with the recent conversation as context.

        The history already ends with the caller's current turn; it is only
        appended when missing.
        """
        profile = self.business_repository.get_profile(context.business_id)

        messages: List[Dict[str, Any]] = [
            {"role": "system", "content": get_system_prompt(profile)}
        ]
        messages.extend({"role": m.role, "content": m.content} for m in context.history)
        if not context.history or context.history[-1].content != text:
            messages.append({"role": "user", "content": text})

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=150,
                response_format={"type": "json_object"},
            )
        except Exception as e:
            raise GenerationError(f"LLM request failed: {type(e).__name__}: {e}") from e

        content = response.choices[0].message.content
        try:
            parsed = json.loads(content or "")
        except json.JSONDecodeError as e:
            raise GenerationError(f"LLM returned invalid JSON: {content!r}") from e
        if not isinstance(parsed, dict):
            raise GenerationError(f"LLM returned non-object JSON: {content!r}")

        reply_text = str(parsed.get("response", "")).strip()
        if not reply_text:
            raise GenerationError("LLM returned an empty response")
        label = str(parsed.get("intent") or "other")

        context.state["last_label"] = label
        logger.info(f"[REPLY] LLM intent '{label}' - CallSid: {context.call_id}")
        return Reply(text=reply_text, label=label)
