"""Keyword-overlap scores between products and an aesthetic."""

from services.models import AestheticAnalysis, CulturalContext, Product


def aesthetic_match(product: Product, analysis: AestheticAnalysis) -> float:
    """Fraction of the aesthetic's keywords and colors echoed by the title."""
    title_words = product.title.lower().split()
    aesthetic_words = [w.lower() for w in [*analysis.keywords, *analysis.colors]]
    if not aesthetic_words:
        return 0.0

    matches = [
        word
        for word in title_words
        if any(word in aw or aw in word for aw in aesthetic_words)
    ]
    return min(len(matches) / len(aesthetic_words), 1.0)


def cultural_match_score(product: Product, context: CulturalContext) -> float:
    """Weighted keyword hits in title and description, plus a rating bonus."""
    haystacks = (product.title.lower(), (product.description or "").lower())

    def hits(terms: list[str]) -> int:
        return sum(1 for term in terms if any(term.lower() in h for h in haystacks))

    score = (
        hits(context.aesthetic_keywords) * 0.4
        + hits(context.style_preferences) * 0.3
        + hits(context.mood_descriptors) * 0.2
    )
    if product.rating > 4.5:
        score += 0.05
    elif product.rating > 4.0:
        score += 0.03
    return min(score, 1.0)
