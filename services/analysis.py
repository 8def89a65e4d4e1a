"""Aesthetic analysis client — language-model calls routed through the gateway."""

import asyncio

import structlog

from gateway.errors import GatewayError
from gateway.router import GatewayRouter, RequestConfig
from services.models import (
    AestheticAnalysis,
    ChatCompletionBody,
    Product,
    parse_remote,
    parse_remote_json,
)
from taskqueue.models import NotificationType
from taskqueue.queue import TaskQueue

log = structlog.get_logger()

ANALYSIS_PROMPT = (
    "You are an expert aesthetic analyst for an AI shopping assistant. Parse user "
    "descriptions of style preferences and extract specific elements. Return a JSON "
    "object with: style (main aesthetic category), colors (3-5 colors), keywords "
    "(5-8 style descriptors for product search), categories (3-5 product "
    "categories), mood (overall tone in 2-3 words), confidence (0-1). Always "
    "return valid JSON with all fields populated."
)

# (trigger phrases, analysis) checked in order; first hit wins
_FALLBACK_PATTERNS: list[tuple[tuple[str, ...], AestheticAnalysis]] = [
    (
        ("dark academia",),
        AestheticAnalysis(
            style="Dark Academia",
            colors=["forest green", "burgundy", "cream", "gold"],
            keywords=["vintage", "scholarly", "antique", "leather", "books", "brass"],
            categories=["books", "home-decor", "clothing", "office-products"],
            mood="scholarly sophisticated",
        ),
    ),
    (
        ("cottagecore",),
        AestheticAnalysis(
            style="Cottagecore",
            colors=["sage green", "cream", "terracotta", "lavender"],
            keywords=["rustic", "cozy", "handmade", "natural", "vintage", "floral"],
            categories=["home-kitchen", "garden", "clothing", "handmade"],
            mood="cozy rustic",
        ),
    ),
    (
        ("aesthetic", "vibe"),
        AestheticAnalysis(
            style="Aesthetic Modern",
            colors=["pastel pink", "white", "gold", "sage"],
            keywords=["trendy", "instagram-worthy", "cute", "aesthetic", "modern"],
            categories=["electronics", "home-decor", "beauty", "clothing"],
            mood="trendy cute",
        ),
    ),
    (
        ("minimalist", "scandinavian"),
        AestheticAnalysis(
            style="Scandinavian Minimalist",
            colors=["white", "light gray", "natural wood", "black"],
            keywords=["clean", "functional", "hygge", "simple", "light", "airy"],
            categories=["furniture", "home-kitchen", "lighting", "textiles"],
            mood="serene functional",
        ),
    ),
    (
        ("boho", "bohemian"),
        AestheticAnalysis(
            style="Bohemian Chic",
            colors=["terracotta", "mustard", "sage", "cream", "rust"],
            keywords=["eclectic", "textured", "macrame", "vintage", "layered", "global"],
            categories=["home-decor", "textiles", "jewelry", "art"],
            mood="free-spirited eclectic",
        ),
    ),
]

_DEFAULT_FALLBACK = AestheticAnalysis(
    style="Modern Minimalist",
    colors=["white", "black", "gray"],
    keywords=["clean", "simple", "elegant"],
    categories=["home-kitchen", "clothing", "books"],
    mood="clean minimalist",
)


def fallback_analysis(user_input: str) -> AestheticAnalysis:
    """Keyword-pattern analysis used when the model service is unavailable."""
    text = user_input.lower()
    for triggers, analysis in _FALLBACK_PATTERNS:
        if any(trigger in text for trigger in triggers):
            return analysis.model_copy(update={"confidence": 0.6}, deep=True)
    return _DEFAULT_FALLBACK.model_copy(update={"confidence": 0.6}, deep=True)


class AestheticAnalysisClient:
    """Talks to the language-model service via the Gateway Router."""

    service = "openai"

    def __init__(
        self,
        router: GatewayRouter,
        queue: TaskQueue,
        model: str = "gpt-4",
        api_key: str | None = None,
        description_stagger_sec: float = 0.2,
    ) -> None:
        self._router = router
        self._queue = queue
        self.model = model
        self.api_key = api_key
        self.description_stagger_sec = description_stagger_sec

    async def analyze(self, user_input: str) -> AestheticAnalysis:
        """Ask the model to analyze a style description.

        Raises:
            GatewayError: The call failed or the answer was malformed.
        """
        content = await self._chat(ANALYSIS_PROMPT, user_input, max_tokens=500)
        analysis = parse_remote_json(AestheticAnalysis, content, self.service)
        self._queue.send_notification(
            f"Aesthetic analysis complete: {analysis.style} style identified",
            NotificationType.SUCCESS,
        )
        return analysis

    async def analyze_with_fallback(self, user_input: str) -> AestheticAnalysis:
        """Like analyze(), but degrades to keyword-pattern analysis on failure."""
        try:
            return await self.analyze(user_input)
        except GatewayError as exc:
            log.warning(
                "analysis.fallback",
                error_type=type(exc).__name__,
                request_id=exc.request_id,
            )
            self._queue.send_notification(
                "Aesthetic analysis failed, using fallback analysis",
                NotificationType.WARNING,
            )
            return fallback_analysis(user_input)

    async def generate_product_description(
        self,
        product: Product,
        analysis: AestheticAnalysis,
    ) -> str:
        """Personalized description of a product. Falls back to a template line."""
        prompt = (
            "You are a product stylist. Create a personalized product description "
            "(max 150 words) that explains how this product fits the user's "
            f"{analysis.style} aesthetic. Be specific about style elements, colors, "
            "and mood."
        )
        try:
            return await self._chat(
                prompt,
                f"Product: {product.title}\nPrice: {product.price}\nRating: {product.rating}",
                max_tokens=200,
            )
        except GatewayError as exc:
            log.warning(
                "analysis.description_fallback",
                product_id=product.id,
                error_type=type(exc).__name__,
            )
            color = analysis.colors[0] if analysis.colors else "signature"
            return (
                f"This {product.title} perfectly complements your {analysis.style} "
                f"aesthetic with its {color} tones and {analysis.mood} vibe."
            )

    async def batch_generate_descriptions(
        self,
        products: list[Product],
        analysis: AestheticAnalysis,
    ) -> list[str]:
        """Descriptions for several products, started with a small stagger."""

        async def describe(index: int, product: Product) -> str:
            if index and self.description_stagger_sec > 0:
                await asyncio.sleep(self.description_stagger_sec * index)
            return await self.generate_product_description(product, analysis)

        descriptions = await asyncio.gather(*(describe(i, p) for i, p in enumerate(products)))
        if products:
            self._queue.send_notification(
                f"Generated personalized descriptions for {len(products)} products",
                NotificationType.SUCCESS,
            )
        return list(descriptions)

    async def check_service_health(self) -> bool:
        """Whether the model service answers through the gateway."""
        try:
            await self._router.route_request("/openai/models", self._config("GET"))
        except Exception as exc:
            log.warning("analysis.health_check_failed", error_type=type(exc).__name__)
            return False
        return True

    async def _chat(self, system_prompt: str, user_content: str, max_tokens: int) -> str:
        data = await self._router.route_request(
            "/openai/chat",
            self._config(
                "POST",
                {
                    "model": self.model,
                    "messages": [
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_content},
                    ],
                    "temperature": 0.7,
                    "max_tokens": max_tokens,
                },
            ),
        )
        return parse_remote(ChatCompletionBody, data, self.service).content

    def _config(self, method: str, body: dict[str, object] | None = None) -> RequestConfig:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return RequestConfig(method=method, json_body=body, headers=headers)
