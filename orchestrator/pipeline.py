"""Shopping orchestrator — composes analysis, product search and documents.

Two pipelines produce the same ShoppingResult shape:

- simplified: sequential analysis -> search -> style guide. Search and style
  guide also start a broader background task on the TaskQueue, but the call
  only waits on the inline steps.
- enhanced: fan-out of independent calls (cultural-context search, expanded
  background search, background style guide), then a second phase that
  depends on the fan-out (AI product descriptions, final renders).

The enhanced pipeline is skipped when both critical dependencies are down,
and any failure inside it, or a run that finds no products, is absorbed
exactly once by re-running the whole request through the simplified
pipeline. Each enhanced run also shows up on the TaskQueue as a
high-priority "enhanced-shopping-request" task. Failures of the simplified
pipeline propagate to the caller.
"""

import asyncio
import uuid
from enum import Enum

import structlog
from pydantic import BaseModel, Field

from orchestrator.aesthetics import expanded_keywords, related_categories
from orchestrator.health import SystemHealthChecker, SystemStatus
from services.analysis import AestheticAnalysisClient
from services.documents import DocumentClient
from services.models import AestheticAnalysis, CulturalContext, Product
from services.products import ProductSearchClient
from services.scoring import aesthetic_match
from taskqueue.models import NotificationType, TaskPriority
from taskqueue.queue import TaskQueue
from taskqueue.scheduler import ScheduledCall, Scheduler

log = structlog.get_logger()


class PipelineMode(Enum):
    """Which pipeline produced a result."""

    SIMPLIFIED = "simplified"
    ENHANCED = "enhanced"


class ShoppingResult(BaseModel):
    """Outcome of one shopping request.

    Attributes:
        request_id: Identifier of this orchestration run.
        mode: Pipeline that produced the result.
        analysis: The aesthetic analysis used.
        products: Inline search results.
        document_url: URL of the rendered style guide.
        enhanced_products: Products with AI descriptions (enhanced only).
        html_preview: Rendered HTML preview (enhanced only).
        background_tasks: Ids of queue tasks started by this request.
    """

    request_id: str
    mode: PipelineMode
    analysis: AestheticAnalysis
    products: list[Product]
    document_url: str
    enhanced_products: list[Product] = Field(default_factory=list)
    html_preview: str | None = None
    background_tasks: list[str] = Field(default_factory=list)


class ShoppingOrchestrator:
    """Top-level composition of the remote services.

    Holds explicit references to every collaborator; nothing is looked up
    globally.
    """

    def __init__(
        self,
        queue: TaskQueue,
        analysis: AestheticAnalysisClient,
        products: ProductSearchClient,
        documents: DocumentClient,
        health: SystemHealthChecker,
        scheduler: Scheduler,
        health_monitor_interval_sec: float = 60.0,
    ) -> None:
        self._queue = queue
        self._analysis = analysis
        self._products = products
        self._documents = documents
        self._health = health
        self._scheduler = scheduler
        self.health_monitor_interval_sec = health_monitor_interval_sec
        self._initialized = False
        self._monitor: ScheduledCall | None = None

    async def initialize(self) -> SystemStatus:
        """Probe dependencies and announce readiness. Safe to call repeatedly."""
        self._queue.send_notification("Initializing shopping services...")
        status = await self.get_system_status()

        if not status.gateway:
            log.warning("orchestrator.gateway_unavailable")
        if not status.queue:
            log.warning("orchestrator.queue_bus_unavailable")

        if not self._initialized:
            self._initialized = True
            if status.critical_unreachable:
                self._queue.send_notification(
                    "Some services are unavailable, using fallback mode",
                    NotificationType.WARNING,
                )
            else:
                self._queue.send_notification(
                    "Ready to find your perfect style!",
                    NotificationType.SUCCESS,
                )
        return status

    async def process_shopping_request(
        self,
        user_input: str,
        user_id: str | None = None,
    ) -> ShoppingResult:
        """Run the simplified sequential pipeline.

        Raises:
            GatewayError: Any failure of the inline steps, after an error
                notification has been published.
        """
        request_id = f"orchestration-{uuid.uuid4().hex}"
        with structlog.contextvars.bound_contextvars(request_id=request_id):
            log.info("orchestrator.simplified_started")
            try:
                self._queue.send_notification("Analyzing your aesthetic preferences...")
                analysis = await self._analysis.analyze_with_fallback(user_input)

                self._queue.send_notification("Searching for products that match your vibe...")
                search_task = self._products.search_async(analysis.keywords, analysis.categories)
                products = await self._products.search(analysis.keywords, analysis.categories)

                self._queue.send_notification("Creating your personalized style guide...")
                guide_task = self._documents.generate_style_guide_async(analysis, products, user_id)
                document_url = await self._documents.generate_style_guide(
                    analysis, products, user_id
                )
            except Exception as exc:
                log.error("orchestrator.simplified_failed", error_type=type(exc).__name__)
                self._queue.send_notification(
                    "Request processing encountered an issue",
                    NotificationType.ERROR,
                )
                raise

            log.info("orchestrator.simplified_completed", products=len(products))
            return ShoppingResult(
                request_id=request_id,
                mode=PipelineMode.SIMPLIFIED,
                analysis=analysis,
                products=products,
                document_url=document_url,
                background_tasks=[search_task, guide_task],
            )

    async def process_enhanced_shopping_request(
        self,
        user_input: str,
        user_id: str | None = None,
    ) -> ShoppingResult:
        """Run the enhanced pipeline, falling back to the simplified one."""
        status = await self.get_system_status()
        if status.critical_unreachable:
            log.warning(
                "orchestrator.enhanced_skipped",
                gateway=status.gateway,
                model_service=status.model_service,
            )
            self._queue.send_notification(
                "Some services are unavailable, using simplified mode",
                NotificationType.WARNING,
            )
            return await self.process_shopping_request(user_input, user_id)

        result: ShoppingResult | None
        try:
            result = await self._run_enhanced(user_input, user_id)
        except Exception as exc:
            log.warning("orchestrator.fallback", error_type=type(exc).__name__, error=str(exc))
            self._queue.send_notification(
                "Enhanced processing failed, using basic results",
                NotificationType.WARNING,
            )
            result = None

        if result is not None and not result.products:
            log.warning("orchestrator.empty_result", request_id=result.request_id)
            self._queue.send_notification(
                "No matches from enhanced search, trying basic search",
                NotificationType.WARNING,
            )
            result = None

        if result is None:
            return await self.process_shopping_request(user_input, user_id)

        self._queue.send_notification(
            f"Complete {result.analysis.style} shopping experience ready!",
            NotificationType.SUCCESS,
        )
        return result

    async def get_system_status(self) -> SystemStatus:
        """Combined health, metrics and queue snapshot. Never raises."""
        return await self._health.check()

    def shutdown(self) -> None:
        """Stop the health monitor and announce the end of the session."""
        self.stop_health_monitor()
        self._initialized = False
        self._queue.send_notification("Shopping session ended. Thanks for shopping with us!")
        log.info("orchestrator.shutdown")

    def start_health_monitor(self) -> None:
        """Check system health every health_monitor_interval_sec."""
        if self._monitor is None:
            self._schedule_monitor()

    def stop_health_monitor(self) -> None:
        if self._monitor is not None:
            self._monitor.cancel()
            self._monitor = None

    async def _run_enhanced(self, user_input: str, user_id: str | None) -> ShoppingResult:
        request_id = f"orchestration-{uuid.uuid4().hex}"
        with structlog.contextvars.bound_contextvars(request_id=request_id):
            log.info("orchestrator.enhanced_started")
            self._queue.add_task("enhanced-shopping-request", TaskPriority.HIGH)
            analysis = await self._analysis.analyze(user_input)

            # Fan-out: both queue tasks start on the next loop turn and run
            # alongside the inline cultural-context search
            search_task = self._products.search_async(
                [*analysis.keywords, *expanded_keywords(analysis)],
                [*analysis.categories, *related_categories(analysis)],
            )
            guide_task = self._documents.generate_style_guide_async(analysis, [], user_id)
            products = await self._products.search_with_cultural_context(
                CulturalContext.from_analysis(analysis)
            )

            enhanced = await self._enhance_products(products, analysis)
            document_url, html_preview = await asyncio.gather(
                self._documents.generate_style_guide(analysis, enhanced, user_id),
                self._documents.generate_html_preview(analysis, enhanced),
            )

            log.info("orchestrator.enhanced_completed", products=len(products))
            return ShoppingResult(
                request_id=request_id,
                mode=PipelineMode.ENHANCED,
                analysis=analysis,
                products=products,
                document_url=document_url,
                enhanced_products=enhanced,
                html_preview=html_preview,
                background_tasks=[search_task, guide_task],
            )

    async def _enhance_products(
        self,
        products: list[Product],
        analysis: AestheticAnalysis,
    ) -> list[Product]:
        descriptions = await self._analysis.batch_generate_descriptions(products, analysis)
        return [
            product.model_copy(
                update={
                    "description": description or product.description,
                    "aesthetic_match": aesthetic_match(product, analysis),
                }
            )
            for product, description in zip(products, descriptions)
        ]

    def _schedule_monitor(self) -> None:
        self._monitor = self._scheduler.call_later(
            self.health_monitor_interval_sec,
            lambda: self._scheduler.spawn(self._monitor_tick()),
        )

    async def _monitor_tick(self) -> None:
        if self._monitor is None:
            return
        status = await self.get_system_status()
        log.info(
            "orchestrator.health_check",
            gateway=status.gateway,
            queue=status.queue,
            model_service=status.model_service,
            requests=status.metrics.requests,
            errors=status.metrics.errors,
        )
        if not status.gateway or not status.queue:
            self._queue.send_notification(
                "Some services are experiencing issues. Switching to fallback mode.",
                NotificationType.WARNING,
            )
        if self._monitor is not None:
            self._schedule_monitor()
