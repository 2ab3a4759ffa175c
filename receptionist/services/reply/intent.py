"""Keyword intent detection and templated replies."""
import logging
import re
from datetime import datetime
from typing import Callable, Dict, List, Optional, Pattern

from receptionist.services.call_session.models import ReplyContext
from receptionist.services.reply.base import Reply, ReplyGenerator
from receptionist.services.reply.business import BusinessProfile, BusinessRepository

logger = logging.getLogger(__name__)

FALLBACK_INTENT = "fallback"
KEYWORD_SCORE = 2
PATTERN_SCORE = 3

# Ties go to the intent listed first
INTENT_KEYWORDS: Dict[str, List[str]] = {
    "booking": ["book", "appointment", "schedule", "reserve", "reservation", "table"],
    "hours": ["hours", "open", "close", "time", "when", "operating"],
    "location": ["where", "location", "address", "directions", "find"],
    "delivery": ["deliver", "delivery", "bring", "ship"],
    "menu": ["menu", "food", "pizza", "price", "cost", "special"],
    "payment": ["pay", "payment", "credit", "cash", "card"],
    "halal": ["halal", "meat", "pork"],
    "generic": ["hello", "hi", "help", "thanks", "bye"],
}

_PATTERN_SOURCES: Dict[str, List[str]] = {
    "booking": [r"book.*table", r"make.*reservation", r"schedule.*appointment"],
    "hours": [r"what.*hours", r"when.*open", r"are you open", r"open.*sunday", r"close.*time"],
    "location": [r"where.*located", r"what.*address", r"how.*get there", r"directions"],
    "delivery": [r"do you deliver", r"delivery.*area", r"deliver.*to"],
    "menu": [r"what.*menu", r"show.*menu", r"pizza.*types", r"what.*serve"],
    "payment": [r"payment.*method", r"accept.*card", r"pay.*cash"],
    "halal": [r"is.*halal", r"halal.*certified"],
    "generic": [r"^(hi|hello|hey)", r"thank", r"bye"],
}
INTENT_PATTERNS: Dict[str, List[Pattern]] = {
    intent: [re.compile(p, re.IGNORECASE) for p in patterns]
    for intent, patterns in _PATTERN_SOURCES.items()
}


def detect_intent(user_input: str) -> str:
    """Score every intent by keyword and pattern hits; highest score wins."""
    text = user_input.lower()
    scores: Dict[str, int] = {}

    for intent, keywords in INTENT_KEYWORDS.items():
        score = sum(KEYWORD_SCORE for keyword in keywords if keyword in text)
        score += sum(
            PATTERN_SCORE for pattern in INTENT_PATTERNS[intent] if pattern.search(text)
        )
        if score > 0:
            scores[intent] = score

    if not scores:
        return FALLBACK_INTENT
    # max() keeps the first of equal scores
    return max(scores, key=lambda intent: scores[intent])


class KeywordReplyGenerator(ReplyGenerator):
    """Canned replies built from the business profile."""

    def __init__(
        self,
        business_repository: BusinessRepository,
        today: Optional[Callable[[], str]] = None,
    ):
        self.business_repository = business_repository
        self._today = today or (lambda: datetime.now().strftime("%A").lower())
        self._responses: Dict[str, Callable[[BusinessProfile], str]] = {
            "booking": self._booking,
            "hours": self._hours,
            "location": self._location,
            "delivery": self._delivery,
            "menu": self._menu,
            "payment": self._payment,
            "halal": self._halal,
            "generic": self._generic,
            FALLBACK_INTENT: self._fallback,
        }

    async def generate_reply(self, text: str, context: ReplyContext) -> Reply:
        profile = self.business_repository.get_profile(context.business_id)
        intent = detect_intent(text)
        response_text = self._responses.get(intent, self._fallback)(profile)

        context.state["last_label"] = intent
        logger.info(f"[REPLY] Intent '{intent}' for '{text[:80]}' - CallSid: {context.call_id}")
        return Reply(text=response_text, label=intent)

    def _booking(self, profile: BusinessProfile) -> str:
        services = ", ".join(profile.services) or "reservations"
        return (
            f"I'd be happy to help you with a reservation! We offer {services}. "
            f"You can call us at {profile.phone} to book, or would you like me "
            f"to check availability for you?"
        )

    def _hours(self, profile: BusinessProfile) -> str:
        today = self._today()
        today_hours = profile.hours.get(today)
        if today_hours:
            opening = f"We're open today, {today.capitalize()}, from {today_hours}."
        else:
            opening = f"We're closed today, {today.capitalize()}."
        full = ", ".join(f"{day.capitalize()} {hours}" for day, hours in profile.hours.items())
        return f"{opening} Our full hours are: {full}." if full else opening

    def _location(self, profile: BusinessProfile) -> str:
        parking = f" {profile.special_notes.parking}." if profile.special_notes.parking else ""
        return f"We're located at {profile.location}.{parking} Would you like directions?"

    def _delivery(self, profile: BusinessProfile) -> str:
        if not profile.delivery_areas:
            return f"We don't offer delivery right now, but you can call {profile.phone} for takeout."
        fee = f" Delivery is {profile.delivery_fee}." if profile.delivery_fee else ""
        return (
            f"Yes, we deliver to {', '.join(profile.delivery_areas)}.{fee} "
            f"Would you like to place a delivery order?"
        )

    def _menu(self, profile: BusinessProfile) -> str:
        options = (
            "vegetarian options available"
            if profile.special_notes.vegetarian_options
            else "a variety of options"
        )
        return (
            f"Our specialties include {', '.join(profile.specialties)}. We have {options}. "
            f"Would you like to hear about our current specials?"
        )

    def _payment(self, profile: BusinessProfile) -> str:
        return (
            f"We accept {', '.join(profile.payment_methods)}. "
            f"Is there a specific payment method you'd like to use?"
        )

    def _halal(self, profile: BusinessProfile) -> str:
        if profile.special_notes.halal:
            return "Yes, all our meat is 100% halal certified."
        return f"Please contact us at {profile.phone} for information about our meat sourcing."

    def _generic(self, profile: BusinessProfile) -> str:
        return (
            f"Hello! Welcome to {profile.business_name}. How can I help you today? "
            f"I can help with reservations, hours, delivery, or questions about our menu."
        )

    def _fallback(self, profile: BusinessProfile) -> str:
        return (
            "I'm sorry, I didn't quite understand that. I can help with reservations, "
            "our hours and location, delivery, the menu, or payment methods. "
            "How can I assist you today?"
        )
