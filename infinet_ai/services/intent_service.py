import re
from typing import Optional

BOOKING_PATTERNS = (
    re.compile(r"\b(book|booking|appointment|schedule|consultation|reserve|reservation|meeting)\b", re.IGNORECASE),
    re.compile(r"(حجز|احجز|موعد|استشارة|اجتماع)"),
)


def is_booking_request(text: Optional[str]) -> bool:
    cleaned = (text or "").strip()
    if not cleaned:
        return False
    return any(pattern.search(cleaned) for pattern in BOOKING_PATTERNS)


def detect_booking_intent(text: Optional[str]) -> Optional[dict]:
    """Hint for the web widget to offer its booking form."""
    if not is_booking_request(text):
        return None
    return {"intent": "booking", "type": "consultation"}
