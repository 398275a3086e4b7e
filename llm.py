import os
import re
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import requests
from dotenv import load_dotenv

from models import GiftIdeasResponse, GiftRequest, Idea, Meta, to_finite_float

load_dotenv()

logger = logging.getLogger(__name__)

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4.1-mini").strip()
OPENAI_CHAT_MODEL = os.getenv("OPENAI_CHAT_MODEL", "gpt-4o-mini").strip()
OPENAI_RESPONSES_URL = os.getenv("OPENAI_RESPONSES_URL", "https://api.openai.com/v1/responses").strip()
OPENAI_CHAT_URL = os.getenv("OPENAI_CHAT_URL", "https://api.openai.com/v1/chat/completions").strip()
OPENAI_TIMEOUT = float(os.getenv("OPENAI_TIMEOUT", "40"))
OPENAI_TEMPERATURE = float(os.getenv("OPENAI_TEMPERATURE", "0.7"))

# bump this when the handler changes to confirm deploys
HANDLER_VERSION = os.getenv("HANDLER_VERSION", "2025-08-30c").strip()

MAX_IDEAS = 8
MAX_CATEGORIES = 3
DEFAULT_WOW = 3

SHIPPING_CONSTRAINT = "Prefer items available to ship within ~7 days."


# ---------------- budget ----------------
def parse_budget(budget: Optional[str]) -> Tuple[Optional[float], Optional[float]]:
    """'$25-$100' -> (25.0, 100.0), '50' -> (50.0, 50.0), anything without numbers -> (None, None)"""
    if not budget:
        return None, None
    nums = sorted(float(m) for m in re.findall(r"\d+(?:\.\d+)?", str(budget)))
    if not nums:
        return None, None
    return nums[0], nums[-1]


def parse_request(body: Any) -> GiftRequest:
    req = GiftRequest.from_body(body)
    parsed_min, parsed_max = parse_budget(req.budget)
    updates = {}
    if req.budget_min is None:
        updates["budget_min"] = parsed_min
    if req.budget_max is None:
        updates["budget_max"] = parsed_max
    return req.model_copy(update=updates) if updates else req


# ---------------- fallback ideas ----------------
def fallback_ideas(name: str = "them") -> List[Idea]:
    return [
        Idea(title="Artisan Chocolate Box", rationale=f"Small-batch truffles for {name}",
             approxPriceUSD=25, categories=["treats"], urlHint="artisan chocolate truffle box", wowFactor=4),
        Idea(title="Hinoki Scented Candle", rationale="Calm Japandi vibe, neutral décor",
             approxPriceUSD=22, categories=["home"], urlHint="hinoki candle", wowFactor=3),
        Idea(title="Engraved Phone Stand", rationale=f"Personalized desk stand for {name}",
             approxPriceUSD=20, categories=["desk"], urlHint="engraved wooden phone stand", wowFactor=3),
        Idea(title="Mini AeroPress Go", rationale="Travel-friendly coffee press",
             approxPriceUSD=40, categories=["coffee", "gadgets"], urlHint="AeroPress Go coffee press", wowFactor=4),
        Idea(title="Cozy Neutral Throw", rationale="Soft, machine-washable",
             approxPriceUSD=25, categories=["home"], urlHint="fleece throw blanket neutral", wowFactor=3),
    ]


# ---------------- prompt ----------------
SYSTEM_PROMPT = """
You return ONLY JSON with top-level key "ideas" (array of 5-8 items). Each idea:
- title (string, concise gift/product name)
- rationale (string, 1-2 sentences)
- approxPriceUSD (number)
- categories (array of 1-3 short strings)
- urlHint (string, a search phrase users can paste into Amazon/Google)
- wowFactor (integer 1-5)
No prose, no markdown, no extra fields. Keep roughly within budget if provided; US shipping preferred; avoid subscriptions unless asked.
""".strip()


def build_payload(req: GiftRequest) -> Dict[str, Any]:
    return {
        "occasion": req.occasion,
        "budget": req.budget,
        "budgetMin": req.budget_min,
        "budgetMax": req.budget_max,
        "interests": list(req.interests),
        "recipient": {"name": req.recipient_name},
        "locale": req.locale,
        "constraints": SHIPPING_CONSTRAINT,
    }


def build_prompt(req: GiftRequest) -> Tuple[str, str]:
    # request data only ever travels in the user message, as JSON
    return SYSTEM_PROMPT, json.dumps(build_payload(req))


# ---------------- sanitize ----------------
def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _sanitize_one(it: Any) -> Optional[Idea]:
    if not isinstance(it, dict):
        return None
    title = _text(it.get("title"))
    if not title:
        return None

    cats = it.get("categories")
    cats = [str(c) for c in cats if c is not None][:MAX_CATEGORIES] if isinstance(cats, list) else []

    url_hint = it.get("urlHint")
    if url_hint is None:
        url_hint = it.get("title")

    wow = it.get("wowFactor")
    if isinstance(wow, float) and wow.is_integer():
        wow = int(wow)  # JSON 4.0
    if isinstance(wow, bool) or not isinstance(wow, int) or not 1 <= wow <= 5:
        wow = DEFAULT_WOW

    return Idea(
        title=title,
        rationale=_text(it.get("rationale")),
        approxPriceUSD=to_finite_float(it.get("approxPriceUSD")),
        categories=cats,
        urlHint=_text(url_hint),
        wowFactor=wow,
    )


def sanitize_ideas(raw: Any) -> List[Idea]:
    if not isinstance(raw, list):
        return []
    ideas = []
    for it in raw:
        idea = _sanitize_one(it)
        if idea is not None:
            ideas.append(idea)
    return ideas[:MAX_IDEAS]


# ---------------- OpenAI calls ----------------
@dataclass(frozen=True)
class ExtractedText:
    shape: str
    text: str = ""

    @property
    def recognized(self) -> bool:
        return self.shape != "unrecognized"


def extract_responses_text(data: Any) -> ExtractedText:
    """Responses API: top-level output_text, else output[0].content[] item of type output_text."""
    if not isinstance(data, dict):
        return ExtractedText("unrecognized")
    if isinstance(data.get("output_text"), str) and data["output_text"]:
        return ExtractedText("output_text", data["output_text"])

    output = data.get("output")
    first = output[0] if isinstance(output, list) and output else None
    content = first.get("content") if isinstance(first, dict) else None
    if isinstance(content, list):
        for c in content:
            if isinstance(c, dict) and c.get("type") == "output_text" and isinstance(c.get("text"), str):
                return ExtractedText("output_array", c["text"])
    return ExtractedText("unrecognized")


def extract_chat_text(data: Any) -> ExtractedText:
    choices = data.get("choices") if isinstance(data, dict) else None
    first = choices[0] if isinstance(choices, list) and choices else None
    message = first.get("message") if isinstance(first, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if isinstance(content, str):
        return ExtractedText("chat_choice", content)
    return ExtractedText("unrecognized")


def _responses_body(model: str, system: str, user: str) -> Dict[str, Any]:
    return {
        "model": model,
        "input": [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ],
        "text": {"format": {"type": "json_object"}},
        "temperature": OPENAI_TEMPERATURE,
    }


def _chat_body(model: str, system: str, user: str) -> Dict[str, Any]:
    return {
        "model": model,
        "messages": [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ],
        "response_format": {"type": "json_object"},
        "temperature": OPENAI_TEMPERATURE,
    }


@dataclass(frozen=True)
class Tier:
    name: str
    url: str
    model: str
    build_body: Callable[[str, str, str], Dict[str, Any]]
    extract: Callable[[Any], ExtractedText]


def default_tiers() -> List[Tier]:
    # cheaper JSON-forcing Responses call first, Chat Completions as the compatible fallback
    return [
        Tier("responses", OPENAI_RESPONSES_URL, OPENAI_MODEL, _responses_body, extract_responses_text),
        Tier("chat_completions", OPENAI_CHAT_URL, OPENAI_CHAT_MODEL, _chat_body, extract_chat_text),
    ]


def _openai_headers() -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {OPENAI_API_KEY}",
        "Content-Type": "application/json",
    }


def query_llm(tier: Tier, system: str, user: str, timeout: Optional[float] = None) -> Dict[str, str]:
    try:
        resp = requests.post(
            tier.url,
            headers=_openai_headers(),
            json=tier.build_body(tier.model, system, user),
            timeout=timeout or OPENAI_TIMEOUT,
        )
    except requests.RequestException as e:
        return {"error": f"request failed: {e}"}

    if not resp.ok:
        return {"error": f"{resp.status_code} {resp.text or resp.reason}"}
    try:
        data = resp.json()
    except ValueError:
        return {"error": f"non-JSON body: {resp.text[:200]}"}

    extracted = tier.extract(data)
    if not extracted.recognized:
        return {"error": "response shape not recognized"}
    return {"text": extracted.text}


def parse_ideas(text: str) -> List[Any]:
    try:
        obj = json.loads(text) if text else {}
    except ValueError:
        logger.error("JSON parse failed; raw: %s", text[:500])
        return []
    ideas = obj.get("ideas") if isinstance(obj, dict) else None
    return ideas if isinstance(ideas, list) else []


def _tier_ideas(tier: Tier, system: str, user: str) -> List[Any]:
    resp = query_llm(tier, system, user)
    if "error" in resp:
        logger.warning("%s tier failed: %s", tier.name, resp["error"])
        return []
    ideas = parse_ideas(resp["text"])
    if not ideas:
        logger.warning("%s tier returned 0 ideas", tier.name)
    return ideas


def first_non_empty(strategies: Iterable[Tuple[str, Callable[[], List[Any]]]]) -> Tuple[Optional[str], List[Any]]:
    """Runs strategies in order and stops at the first one returning a non-empty list."""
    for name, fn in strategies:
        result = fn()
        if result:
            return name, result
    return None, []


@dataclass
class GenerationResult:
    ideas: List[Any] = field(default_factory=list)
    source: Optional[str] = None
    reason: Optional[str] = None


def generate_ideas(system: str, user: str, tiers: Optional[List[Tier]] = None) -> GenerationResult:
    if not OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY missing; skipping model calls")
        return GenerationResult(reason="no_credential")

    tiers = default_tiers() if tiers is None else tiers
    source, ideas = first_non_empty(
        (t.name, lambda t=t: _tier_ideas(t, system, user)) for t in tiers
    )
    if not ideas:
        return GenerationResult(reason="empty")
    return GenerationResult(ideas=ideas, source=source)


# ---------------- main recommender ----------------
def fallback_response(name: str, reason: str) -> GiftIdeasResponse:
    return GiftIdeasResponse(
        ideas=fallback_ideas(name),
        meta=Meta(source="fallback", handlerVersion=HANDLER_VERSION, reason=reason),
    )


def recommend_gifts(req: GiftRequest) -> GiftIdeasResponse:
    system, user = build_prompt(req)
    result = generate_ideas(system, user)

    ideas = sanitize_ideas(result.ideas)
    if not ideas:
        reason = result.reason or "empty"
        logger.warning("No usable ideas (%s); serving fallback.", reason)
        return fallback_response(req.recipient_name, reason)

    return GiftIdeasResponse(
        ideas=ideas,
        meta=Meta(source=result.source, handlerVersion=HANDLER_VERSION),
    )
