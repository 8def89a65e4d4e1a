"""Keyword and category expansion for the enhanced search."""

from services.models import AestheticAnalysis

EXPANDED_KEYWORDS: dict[str, list[str]] = {
    "dark academia": ["tweed", "leather bound", "antique", "mahogany", "scholarly"],
    "cottagecore": ["wicker", "linen", "ceramic", "dried flowers", "handwoven"],
    "minimalist": ["geometric", "monochrome", "sleek", "uncluttered", "modern"],
    "boho": ["macrame", "fringe", "earthy", "textured", "eclectic"],
    "scandinavian": ["hygge", "light wood", "cozy", "functional", "nordic"],
}

DEFAULT_EXPANSION = ["stylish", "quality", "aesthetic"]

RELATED_CATEGORIES: dict[str, list[str]] = {
    "home-kitchen": ["furniture", "lighting", "storage"],
    "clothing": ["accessories", "shoes", "jewelry"],
    "books": ["stationery", "office-products", "art-supplies"],
    "garden": ["outdoor-living", "patio-furniture", "planters"],
}


def expanded_keywords(analysis: AestheticAnalysis) -> list[str]:
    """Extra search terms associated with the analysed style."""
    return list(EXPANDED_KEYWORDS.get(analysis.style.lower(), DEFAULT_EXPANSION))


def related_categories(analysis: AestheticAnalysis) -> list[str]:
    """Neighbouring categories of the analysed ones, deduplicated in order."""
    related: list[str] = []
    for category in analysis.categories:
        for candidate in RELATED_CATEGORIES.get(category, []):
            if candidate not in related:
                related.append(candidate)
    return related
