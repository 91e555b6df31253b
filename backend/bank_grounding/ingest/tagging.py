"""Keyword-based tag suggestions for newly uploaded filings."""

from __future__ import annotations

from dataclasses import dataclass, field

TOPIC_KEYWORDS: dict[str, tuple[str, ...]] = {
    "liquidity": ("liquidity", "liquid assets", "cash flow", "funding"),
    "capital": ("capital", "equity", "tier 1", "leverage ratio"),
    "asset_quality": ("asset quality", "npl", "non-performing", "loan loss", "credit quality"),
    "earnings": ("earnings", "profitability", "income", "roe", "roa", "nim"),
    "risk_management": ("risk", "var", "stress test", "compliance"),
    "efficiency": ("efficiency", "operating", "cost", "expense"),
    "growth": ("growth", "expansion", "acquisition", "market share"),
    "technology": ("technology", "digital", "fintech", "automation"),
    "strategy": ("strategy", "strategic", "plan", "initiative"),
}

BANK_TYPE_PHRASES: dict[str, str] = {
    "community": "community bank",
    "regional": "regional bank",
}


@dataclass(slots=True)
class TagSuggestion:
    topics: list[str] = field(default_factory=list)
    bank_types: list[str] = field(default_factory=list)
    asset_size_range: str = "all"


def suggest_tags(text: str) -> TagSuggestion:
    """Guess topics and bank types from plain substring matches.

    Falls back to ``general`` and ``all`` when nothing matches.
    """
    content = text.lower()
    suggestion = TagSuggestion()
    for topic, keywords in TOPIC_KEYWORDS.items():
        if any(keyword in content for keyword in keywords):
            suggestion.topics.append(topic)
    if not suggestion.topics:
        suggestion.topics.append("general")
    for bank_type, phrase in BANK_TYPE_PHRASES.items():
        if phrase in content:
            suggestion.bank_types.append(bank_type)
    if not suggestion.bank_types:
        suggestion.bank_types.append("all")
    return suggestion


__all__ = ["TagSuggestion", "suggest_tags", "TOPIC_KEYWORDS"]
