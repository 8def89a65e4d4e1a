"""Remote service clients — every call goes through the Gateway Router."""

from services.analysis import AestheticAnalysisClient, fallback_analysis
from services.documents import DocumentClient
from services.models import AestheticAnalysis, CulturalContext, Product
from services.products import ProductSearchClient

__all__ = [
    "AestheticAnalysis",
    "AestheticAnalysisClient",
    "CulturalContext",
    "DocumentClient",
    "Product",
    "ProductSearchClient",
    "fallback_analysis",
]
