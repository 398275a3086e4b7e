import math
from typing import Any, List, Optional

from pydantic import BaseModel, Field


def to_finite_float(value: Any) -> Optional[float]:
    """Numbers and numeric strings become a finite float, anything else None."""
    if isinstance(value, bool) or value is None:
        return None
    if not isinstance(value, (int, float, str)):
        return None
    try:
        num = float(value.strip() if isinstance(value, str) else value)
    except (ValueError, OverflowError):
        return None
    return num if math.isfinite(num) else None


class Idea(BaseModel):
    title: str = Field(..., min_length=1, description="Concise gift/product name")
    rationale: str = ""
    approxPriceUSD: Optional[float] = None
    categories: List[str] = Field(default_factory=list)
    urlHint: str = ""
    wowFactor: int = Field(3, ge=1, le=5)


class Meta(BaseModel):
    source: str
    handlerVersion: str
    reason: Optional[str] = None


class GiftIdeasResponse(BaseModel):
    ideas: List[Idea]
    meta: Optional[Meta] = None


class GiftRequest(BaseModel):
    occasion: str = "Gift"
    budget: str = ""
    budget_min: Optional[float] = None
    budget_max: Optional[float] = None
    recipient_name: str = "them"
    locale: str = "en-US"
    interests: List[str] = Field(default_factory=list)

    @classmethod
    def from_body(cls, body: Any) -> "GiftRequest":
        """
        Builds a request from whatever JSON the caller sent.
        Missing or malformed fields take their defaults; this never raises.
        Budget bounds are only the explicit budgetMin/budgetMax here, see llm.parse_request.
        """
        if not isinstance(body, dict):
            body = {}

        occasion = body.get("occasion")
        locale = body.get("locale")
        budget = body.get("budget")

        recipient = body.get("recipient")
        name = recipient.get("name") if isinstance(recipient, dict) else None

        interests = body.get("interests")
        if isinstance(interests, list):
            interests = [str(x) for x in interests if x is not None]
        else:
            interests = []

        return cls(
            occasion="Gift" if occasion is None else str(occasion),
            budget="" if budget is None else str(budget),
            budget_min=to_finite_float(body.get("budgetMin")),
            budget_max=to_finite_float(body.get("budgetMax")),
            recipient_name=str(name) if name else "them",
            locale="en-US" if locale is None else str(locale),
            interests=interests,
        )
