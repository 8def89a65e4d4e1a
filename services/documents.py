"""Document rendering client — style guides and HTML previews."""

import re
from typing import Any

import structlog

from gateway.errors import MalformedResponseError
from gateway.router import GatewayRouter, RequestConfig
from services.models import AestheticAnalysis, DocumentResponseBody, Product, parse_remote
from taskqueue.models import NotificationType, TaskPriority
from taskqueue.queue import TaskQueue

log = structlog.get_logger()


def style_theme(style: str) -> str:
    return re.sub(r"\s+", "-", style.strip().lower())


def style_guide_content(analysis: AestheticAnalysis, products: list[Product]) -> dict[str, Any]:
    """Structured content handed to the renderer's template."""
    return {
        "style": analysis.style,
        "mood": analysis.mood,
        "colors": analysis.colors,
        "keywords": analysis.keywords,
        "products": [
            {
                "title": p.title,
                "price": p.price,
                "url": p.url,
                "image": p.image,
                "description": p.description,
                "aesthetic_match": p.aesthetic_match,
            }
            for p in products
        ],
    }


class DocumentClient:
    """Renders style guides through the document service."""

    service = "foxit"

    def __init__(self, router: GatewayRouter, queue: TaskQueue, api_key: str | None = None) -> None:
        self._router = router
        self._queue = queue
        self.api_key = api_key

    async def generate_style_guide(
        self,
        analysis: AestheticAnalysis,
        products: list[Product],
        user_id: str | None = None,
        template: str = "style-guide-template",
    ) -> str:
        """Render a PDF style guide and return its URL.

        Raises:
            GatewayError: The call failed or returned no document URL.
        """
        body = await self._render(analysis, products, "pdf", template, user_id)
        if not body.document_url:
            raise MalformedResponseError("Document service returned no document_url", self.service)
        self._queue.send_notification(
            f"Your {analysis.style} style guide is ready for download!",
            NotificationType.SUCCESS,
        )
        return body.document_url

    def generate_style_guide_async(
        self,
        analysis: AestheticAnalysis,
        products: list[Product],
        user_id: str | None = None,
    ) -> str:
        """Queue a premium style guide render. Returns the task id."""
        analysis = analysis.model_copy(deep=True)
        products = [p.model_copy() for p in products]
        return self._queue.add_task(
            f"document-generation:{analysis.style}-style-guide",
            TaskPriority.NORMAL,
            work=lambda: self.generate_style_guide(
                analysis, products, user_id, template="premium-style-guide"
            ),
        )

    async def generate_html_preview(
        self,
        analysis: AestheticAnalysis,
        products: list[Product],
    ) -> str:
        """Render an HTML preview of the style guide."""
        body = await self._render(analysis, products, "html", "style-guide-preview", None)
        if body.html is None:
            raise MalformedResponseError("Document service returned no html", self.service)
        return body.html

    async def _render(
        self,
        analysis: AestheticAnalysis,
        products: list[Product],
        fmt: str,
        template: str,
        user_id: str | None,
    ) -> DocumentResponseBody:
        options: dict[str, Any] = {
            "page_size": "A4",
            "orientation": "portrait",
            "include_images": True,
            "brand_colors": analysis.colors,
            "style_theme": style_theme(analysis.style),
        }
        if user_id:
            options["user_id"] = user_id
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        data = await self._router.route_request(
            "/foxit/documents",
            RequestConfig(
                method="POST",
                headers=headers,
                json_body={
                    "template": template,
                    "content": style_guide_content(analysis, products),
                    "format": fmt,
                    "options": options,
                },
            ),
        )
        log.debug("documents.rendered", format=fmt, template=template, style=analysis.style)
        return parse_remote(DocumentResponseBody, data, self.service)
