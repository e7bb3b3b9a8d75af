import re
from typing import Iterable, List, Optional, Sequence, Set, Tuple

import models

STOPWORDS = {"about", "their", "there", "these", "those", "would", "could", "should"}
PUNCTUATION = re.compile(r"[.,;:!?(){}\[\]<>]")
MAX_KEYWORDS = 10
MAX_PATH_EVENTS = 5

# (minimum interactions, discount percent, reason)
LOYALTY_TIERS = [
    (10, 20, "Loyalty discount - thank you for attending 10+ events!"),
    (5, 10, "Regular attendee discount - thank you for attending 5+ events!"),
    (1, 5, "Returning attendee discount"),
]


def extract_keywords(description: Optional[str]) -> List[str]:
    if not description:
        return []
    keywords: List[str] = []
    for word in description.split():
        if len(word) <= 4 or word.lower() in STOPWORDS:
            continue
        cleaned = PUNCTUATION.sub("", word)
        if cleaned and cleaned not in keywords:
            keywords.append(cleaned)
    return keywords[:MAX_KEYWORDS]


def score_event(event: models.Event, interests: Set[str], interacted: Set[str]) -> int:
    if event.id in interacted:
        return 0
    score = 0
    if event.category in interests:
        score += 5
    for tag in event.tags or []:
        if tag in interests:
            score += 2
    return score


def recommend_events(
    events: Iterable[models.Event],
    interests: Iterable[str],
    interacted_event_ids: Iterable[str],
) -> List[Tuple[models.Event, int]]:
    interest_set = set(interests)
    interacted = set(interacted_event_ids)
    scored = [(event, score_event(event, interest_set, interacted)) for event in events]
    scored = [item for item in scored if item[1] > 0]
    # sorted() is stable, so equal scores keep the query order
    return sorted(scored, key=lambda item: item[1], reverse=True)


def learning_path(skill: str, events: Sequence[models.Event]) -> dict:
    needle = skill.lower()
    related = [
        event
        for event in events
        if needle in (event.title or "").lower() or needle in (event.description or "").lower()
    ]
    related.sort(key=lambda event: event.date)
    return {
        "name": f"{skill} Learning Track",
        "description": f"A customized learning path to help you develop {skill} skills through a sequence of events.",
        "events": related[:MAX_PATH_EVENTS],
    }


def parse_price(price) -> float:
    if price is None:
        return 0.0
    match = re.search(r"\d+(?:\.\d+)?", str(price).replace(",", ""))
    return float(match.group(0)) if match else 0.0


def dynamic_pricing(base_price: float, interaction_count: int) -> dict:
    discount_percentage = 0
    reason = ""
    for minimum, percent, tier_reason in LOYALTY_TIERS:
        if interaction_count >= minimum:
            discount_percentage = percent
            reason = tier_reason
            break
    discount_amount = base_price * discount_percentage / 100
    return {
        "discounted_price": max(0.0, round(base_price - discount_amount, 2)),
        "discount_percentage": discount_percentage,
        "reason": reason,
    }
