"""Product search client routed through the gateway."""

import asyncio
import re
import uuid

import structlog

from gateway.router import GatewayRouter, RequestConfig
from services.models import (
    CulturalContext,
    Product,
    SearchProductDetail,
    SearchResponseBody,
    parse_remote,
)
from services.scoring import cultural_match_score
from taskqueue.models import NotificationType, TaskPriority
from taskqueue.queue import TaskQueue

log = structlog.get_logger()

PRODUCT_FOUND = "PRODUCT_FOUND_RESPONSE"
MAX_RESULTS = 12

_RATING = re.compile(r"(\d+\.?\d*)")


def parse_rating(value: str | float | None) -> float:
    """Pull the numeric rating out of strings like "4.5 out of 5 stars"."""
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    match = _RATING.search(value)
    return float(match.group(1)) if match else 0.0


def to_product(detail: SearchProductDetail) -> Product:
    price = detail.price
    if isinstance(price, (int, float)):
        price = f"${price:.2f}"
    return Product(
        id=detail.asin or f"product-{uuid.uuid4().hex[:12]}",
        title=detail.productDescription or "Product",
        price=price or "$0.00",
        image=detail.imgUrl or "",
        rating=parse_rating(detail.productRating),
        url=f"https://amazon.com{detail.dpUrl}" if detail.dpUrl else "",
        description=detail.productDescription,
        category=detail.category,
    )


class ProductSearchClient:
    """Keyword product search, inline or as a background queue task."""

    service = "amazon"

    def __init__(self, router: GatewayRouter, queue: TaskQueue, domain_code: str = "com") -> None:
        self._router = router
        self._queue = queue
        self.domain_code = domain_code

    async def search(self, keywords: list[str], categories: list[str] | None = None) -> list[Product]:
        """Search for products matching keywords and categories.

        Returns at most twelve products; an empty list when nothing matched.

        Raises:
            GatewayError: The call failed or the answer was malformed.
        """
        query = " ".join([*keywords, *(categories or [])])
        data = await self._router.route_request(
            "/amazon/search",
            RequestConfig(
                params={
                    "domainCode": self.domain_code,
                    "keyword": query,
                    "page": 1,
                    "excludeSponsored": "false",
                    "sortBy": "relevanceblender",
                    "withCache": "true",
                }
            ),
        )
        body = parse_remote(SearchResponseBody, data, self.service)

        if body.responseStatus != PRODUCT_FOUND:
            log.info("products.none_found", query=query, response_status=body.responseStatus)
            self._queue.send_notification(
                "No products found for your search, try different keywords",
                NotificationType.WARNING,
            )
            return []

        products = [to_product(d) for d in body.searchProductDetails][:MAX_RESULTS]
        self._queue.send_notification(
            f"Found {len(products)} products matching your aesthetic!",
            NotificationType.SUCCESS,
        )
        return products

    def search_async(self, keywords: list[str], categories: list[str] | None = None) -> str:
        """Queue a broader search (one query per category). Returns the task id."""
        keywords = list(keywords)
        categories = list(categories or [])
        return self._queue.add_task(
            f"amazon-search:{','.join(keywords)}",
            TaskPriority.NORMAL,
            work=lambda: self._background_search(keywords, categories),
        )

    async def search_with_cultural_context(self, context: CulturalContext) -> list[Product]:
        """Search with every context term, then rank by cultural match."""
        keywords = [
            *context.aesthetic_keywords,
            *context.style_preferences,
            *context.mood_descriptors,
        ]
        products = await self.search(keywords, context.categories)
        scored = [
            p.model_copy(update={"aesthetic_match": cultural_match_score(p, context)})
            for p in products
        ]
        return sorted(scored, key=lambda p: p.aesthetic_match or 0.0, reverse=True)

    async def _background_search(self, keywords: list[str], categories: list[str]) -> list[Product]:
        if categories:
            batches = await asyncio.gather(
                *(self.search([*keywords, category]) for category in categories)
            )
        else:
            batches = [await self.search(keywords)]
        products = [p for batch in batches for p in batch]
        self._queue.send_notification(
            f"Found {len(products)} products matching your {' '.join(keywords)} aesthetic!",
            NotificationType.SUCCESS,
        )
        return products
