"""Domain models exchanged with the remote services.

Remote payloads are validated here, at the boundary. A payload that does not
fit becomes a MalformedResponseError instead of a type failure deeper in the
pipeline.
"""

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gateway.errors import MalformedResponseError

ModelT = TypeVar("ModelT", bound=BaseModel)


class AestheticAnalysis(BaseModel):
    """Structured reading of a user's style description.

    Attributes:
        style: Main aesthetic, e.g. "Dark Academia".
        colors: Preferred colors.
        keywords: Style descriptors used as search terms.
        categories: Product categories to search.
        mood: Overall emotional tone in a few words.
        confidence: Confidence of the analysis (0.0 to 1.0).
    """

    style: str
    colors: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    mood: str = ""
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)


class Product(BaseModel):
    """A product search result, optionally scored against an aesthetic."""

    id: str
    title: str
    price: str = "$0.00"
    image: str = ""
    rating: float = 0.0
    url: str = ""
    description: str | None = None
    category: str | None = None
    aesthetic_match: float | None = Field(default=None, ge=0.0, le=1.0)


class CulturalContext(BaseModel):
    """Search context derived from an analysis for the enhanced path."""

    aesthetic_keywords: list[str] = Field(default_factory=list)
    style_preferences: list[str] = Field(default_factory=list)
    mood_descriptors: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)

    @classmethod
    def from_analysis(cls, analysis: AestheticAnalysis) -> "CulturalContext":
        return cls(
            aesthetic_keywords=list(analysis.keywords),
            style_preferences=[analysis.style],
            mood_descriptors=analysis.mood.split(),
            categories=list(analysis.categories),
        )


class ChatMessage(BaseModel):
    content: str


class ChatChoice(BaseModel):
    message: ChatMessage


class ChatCompletionBody(BaseModel):
    """The subset of a chat-completion response the clients read."""

    choices: list[ChatChoice] = Field(min_length=1)

    @property
    def content(self) -> str:
        return self.choices[0].message.content


class SearchProductDetail(BaseModel):
    model_config = ConfigDict(extra="ignore")

    asin: str | None = None
    productDescription: str | None = None
    price: str | float | None = None
    imgUrl: str | None = None
    productRating: str | float | None = None
    dpUrl: str | None = None
    category: str | None = None


class SearchResponseBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    responseStatus: str
    searchProductDetails: list[SearchProductDetail] = Field(default_factory=list)


class DocumentResponseBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    document_url: str | None = None
    html: str | None = None


def parse_remote(model: type[ModelT], data: Any, service: str) -> ModelT:
    """Validate a remote payload, raising MalformedResponseError on mismatch."""
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise MalformedResponseError(
            f"Unexpected {model.__name__} payload from {service}",
            service=service,
        ) from exc


def parse_remote_json(model: type[ModelT], raw: str, service: str) -> ModelT:
    """Validate a JSON string embedded in a remote payload."""
    try:
        return model.model_validate_json(raw)
    except ValidationError as exc:
        raise MalformedResponseError(
            f"Unexpected {model.__name__} JSON from {service}",
            service=service,
        ) from exc
