# homelead/services/articles.py
from __future__ import annotations

import re
from typing import Dict, List, Optional
from urllib.parse import quote

from homelead.core.config import BLOG_BASE_URL


def _article(category: str, title: str, slug: str, *keywords: str) -> Dict[str, object]:
    return {
        "category": category,
        "title": title,
        "url": f"{BLOG_BASE_URL.rstrip('/')}/{quote(slug)}/",
        "keywords": list(keywords),
    }


ARTICLES: List[Dict[str, object]] = [
    # mortgage
    _article("loan", "The complete guide to choosing a mortgage", "mortgage-basics-guide", "mortgage", "interest rate", "choosing"),
    _article("loan", "Fixed or variable rate: which one fits you", "fixed-vs-variable-rate", "fixed rate", "variable rate"),
    _article("loan", "How much should your monthly payment be", "ideal-monthly-payment", "monthly payment", "affordable"),
    _article("loan", "Five ways to pass mortgage screening", "mortgage-screening-tips", "screening", "approval"),
    _article("loan", "Can you buy a home with no down payment", "zero-down-payment", "down payment", "upfront cost"),
    _article("loan", "Joint loans for dual-income couples", "joint-loans-couples", "joint loan", "couple", "dual income"),
    _article("loan", "Mortgages for freelancers", "freelancer-mortgage", "freelance", "self-employed"),
    _article("loan", "Preparing for rising interest rates", "rising-rate-risk", "rate rise", "risk"),
    # life plan
    _article("lifeplan", "What happens if you buy without a life plan", "buying-without-life-plan", "life plan", "planning"),
    _article("lifeplan", "Balancing education costs and a mortgage", "education-costs-and-mortgage", "education", "children", "school"),
    _article("lifeplan", "Renting vs buying for young families", "rent-vs-buy", "rent", "buy", "compare"),
    _article("lifeplan", "A household budget check before you buy", "household-budget-check", "budget check", "household"),
    # home hunting
    _article("hunting", "Seven steps of a home purchase", "purchase-flow-7-steps", "purchase flow", "steps", "process"),
    _article("hunting", "When is the best time to buy", "best-time-to-buy", "timing", "when"),
    _article("hunting", "Ten things to check at a viewing", "viewing-checklist", "viewing", "inspection", "check"),
    _article("hunting", "Three steps for first-time home hunters", "first-time-home-hunting", "first-time", "beginner"),
    _article("hunting", "Condo or house: which is right", "condo-vs-house", "condo", "house", "detached"),
    _article("hunting", "New build or renovation", "new-vs-renovation", "new build", "renovation", "pre-owned"),
    # builders
    _article("housemaker", "Keeping a custom home within budget", "custom-home-budget", "custom home", "over budget"),
    _article("housemaker", "Land or builder first", "land-or-builder-first", "land", "builder"),
    # condominiums
    _article("mansion", "Checking management fees before buying a condo", "condo-management-fees", "management fee", "repair reserve"),
]

FALLBACK_PICKS = (
    "Three steps for first-time home hunters",
    "The complete guide to choosing a mortgage",
    "How much should your monthly payment be",
)

ARTICLE_TAG = re.compile(r"\{\{ARTICLE\|(.+?)\}\}")


def by_title(title: str) -> Optional[Dict[str, object]]:
    for a in ARTICLES:
        if a["title"] == title:
            return a
    return None


def find(title: str) -> Optional[Dict[str, object]]:
    """Exact title, then containment either way, then any keyword."""
    title = (title or "").strip()
    if not title:
        return None
    lowered = title.lower()
    for a in ARTICLES:
        t = str(a["title"]).lower()
        if t == lowered or t in lowered or lowered in t:
            return a
    for a in ARTICLES:
        if any(k.lower() in lowered for k in a["keywords"]):
            return a
    return None


def resolve_tags(reply: str) -> str:
    """Rewrite {{ARTICLE|title}} to {{ARTICLE|title|url}}; unknown titles are dropped."""
    def _sub(m: re.Match) -> str:
        a = find(m.group(1).split("|")[0])
        return f"{{{{ARTICLE|{a['title']}|{a['url']}}}}}" if a else ""
    return ARTICLE_TAG.sub(_sub, reply or "")


def fallback_picks() -> List[Dict[str, str]]:
    return [{"title": a["title"], "url": a["url"]} for a in map(by_title, FALLBACK_PICKS) if a]


def compact_list() -> str:
    return ", ".join(f"{a['title']} [{a['category']}]" for a in ARTICLES)


def indexed_list() -> str:
    return "\n".join(f"{i}: {a['title']} [{a['category']}]" for i, a in enumerate(ARTICLES))


def picks_from_indices(indices: object, limit: int = 3) -> List[Dict[str, str]]:
    out: List[Dict[str, str]] = []
    if not isinstance(indices, list):
        return out
    for idx in indices[:limit]:
        if isinstance(idx, int) and 0 <= idx < len(ARTICLES):
            out.append({"title": ARTICLES[idx]["title"], "url": ARTICLES[idx]["url"]})
    return out
