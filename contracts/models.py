# contracts/models.py
"""
Pydantic models for the wardrobe recommendation core.
These models define the data contracts for wardrobe items, shopping preferences,
piece suggestions, product results and the recommendation session, plus the
strictly validated shapes we accept back from the reasoning model.
"""
from datetime import datetime, timezone
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# Keyword list used both in prompts and for price-limit matching (order matters)
CLOTHING_TYPES = (
    "coat",
    "jacket",
    "denim",
    "dress",
    "skirt",
    "top",
    "pants",
    "knitwear",
    "shoes",
    "bag",
    "accessory",
    "other",
)

ClothingType = Literal[
    "coat", "jacket", "denim", "dress", "skirt", "top",
    "pants", "knitwear", "shoes", "bag", "accessory", "other",
]
StorePreference = Literal["preferred", "avoided", "neutral"]
SuggestionStatus = Literal["pending", "approved", "rejected", "refined"]
SearchStatus = Literal["loading", "complete", "error"]
SessionMode = Literal["suggestions", "direct-search"]

DIRECT_SEARCH_ID = "direct-search"


# ============================================================================
# Wardrobe
# ============================================================================
class OrderInfo(BaseModel):
    """Purchase metadata attached to a wardrobe piece."""
    order_date: Optional[str] = None
    order_number: Optional[str] = None
    retailer: Optional[str] = None


class WardrobeItem(BaseModel):
    """
    A single piece in the user's wardrobe, as supplied by the wardrobe
    subsystem. Read-only from the point of view of this core.
    """
    id: str
    name: str
    type: str = "other"
    color: str = ""
    style: str = ""
    designer: str = ""
    image_url: Optional[str] = None
    product_url: Optional[str] = None
    order: Optional[OrderInfo] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        # Wardrobe ids are numeric in the database but opaque here
        return str(value) if value is not None else value


# ============================================================================
# Preferences
# ============================================================================
class StoreInfo(BaseModel):
    name: str
    is_from_history: bool = False
    preference: StorePreference = "preferred"


class PriceLimit(BaseModel):
    clothing_type: ClothingType
    max_price: float = Field(gt=0)


class PreferenceSet(BaseModel):
    """
    Per-user shopping preferences.
    Store names are unique case-insensitively; one price limit per clothing type.
    """
    stores: List[StoreInfo] = []
    price_limits: List[PriceLimit] = []
    last_updated: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _check_uniqueness(self):
        names = [s.name.lower() for s in self.stores]
        if len(names) != len(set(names)):
            raise ValueError("store names must be unique (case-insensitive)")
        types = [p.clothing_type for p in self.price_limits]
        if len(types) != len(set(types)):
            raise ValueError("at most one price limit per clothing type")
        return self

    def find_store(self, name: str) -> Optional[StoreInfo]:
        wanted = name.lower()
        return next((s for s in self.stores if s.name.lower() == wanted), None)

    def preferred_stores(self) -> List[str]:
        return [s.name for s in self.stores if s.preference == "preferred"]

    def avoided_stores(self) -> List[str]:
        return [s.name for s in self.stores if s.preference == "avoided"]

    def price_limit_for(self, clothing_type: Optional[str]) -> Optional[PriceLimit]:
        if clothing_type is None:
            return None
        return next((p for p in self.price_limits if p.clothing_type == clothing_type), None)


# ============================================================================
# Suggestions
# ============================================================================
class PieceSuggestion(BaseModel):
    """
    An AI-proposed new piece concept the user may approve, reject or edit.
    """
    id: str
    description: str
    rationale: str
    refined_description: Optional[str] = None
    compatible_piece_ids: List[str] = []
    status: SuggestionStatus = "pending"

    # Extra attributes returned by the model, kept for display
    clothing_type: Optional[str] = None
    color: Optional[str] = None
    style: Optional[str] = None

    @model_validator(mode="after")
    def _refined_needs_description(self):
        if self.status == "refined" and not self.refined_description:
            raise ValueError("refined suggestions require refined_description")
        return self

    @property
    def effective_description(self) -> str:
        return self.refined_description or self.description


# ============================================================================
# Products
# ============================================================================
class ProductResult(BaseModel):
    """
    A candidate product from live search, possibly enriched by verification.
    """
    id: str
    name: str
    retailer: str
    url: str
    price: Optional[float] = Field(default=None, gt=0)
    currency: str = "USD"
    image_url: Optional[str] = None
    available_sizes: Optional[List[str]] = None
    is_preferred_store: bool = False


class ProductSearchResults(BaseModel):
    """
    One search invocation for one suggestion (or the direct-search sentinel).
    """
    suggestion_id: str
    products: List[ProductResult] = []
    status: SearchStatus
    error: Optional[str] = None
    searched_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _check_status_fields(self):
        if self.status == "error" and not self.error:
            raise ValueError("error results require an error message")
        if self.status != "error" and self.error is not None:
            raise ValueError("only error results carry an error message")
        if self.status == "loading" and self.products:
            raise ValueError("loading results carry no products")
        return self

    @classmethod
    def loading(cls, suggestion_id: str) -> "ProductSearchResults":
        return cls(suggestion_id=suggestion_id, status="loading")

    @classmethod
    def complete(cls, suggestion_id: str, products: List[ProductResult]) -> "ProductSearchResults":
        return cls(suggestion_id=suggestion_id, status="complete", products=products)

    @classmethod
    def failed(cls, suggestion_id: str, message: str) -> "ProductSearchResults":
        return cls(suggestion_id=suggestion_id, status="error", error=message)


class DirectSearch(BaseModel):
    query: str
    results: ProductSearchResults


# ============================================================================
# Session
# ============================================================================
class RecommendationSession(BaseModel):
    """
    The in-progress state of one recommendation flow.

    Exactly one of the two shapes is valid, selected by ``mode``:
    - ``suggestions``: suggestions + per-suggestion search results
    - ``direct-search``: a single free-text search
    """
    mode: SessionMode
    suggestions: List[PieceSuggestion] = []
    search_results: List[ProductSearchResults] = []
    direct_search: Optional[DirectSearch] = None
    created_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _check_mode_exclusivity(self):
        if self.mode == "suggestions":
            if self.direct_search is not None:
                raise ValueError("suggestions sessions cannot carry a direct search")
        else:
            if self.suggestions or self.search_results:
                raise ValueError("direct-search sessions cannot carry suggestions")
            if self.direct_search is None:
                raise ValueError("direct-search sessions require a direct search")
        return self

    def find_suggestion(self, suggestion_id: str) -> Optional[PieceSuggestion]:
        return next((s for s in self.suggestions if s.id == suggestion_id), None)

    def result_for(self, suggestion_id: str) -> Optional[ProductSearchResults]:
        return next((r for r in self.search_results if r.suggestion_id == suggestion_id), None)

    def with_result(self, result: ProductSearchResults) -> "RecommendationSession":
        """Return a copy whose entry for ``result.suggestion_id`` is replaced."""
        kept = [r for r in self.search_results if r.suggestion_id != result.suggestion_id]
        return self.model_copy(update={"search_results": kept + [result]})

    def without_result(self, suggestion_id: str) -> "RecommendationSession":
        kept = [r for r in self.search_results if r.suggestion_id != suggestion_id]
        return self.model_copy(update={"search_results": kept})


# ============================================================================
# Memory bank
# ============================================================================
class QueryRecord(BaseModel):
    query: str
    source: str
    timestamp: datetime = Field(default_factory=utc_now)


class UserReflections(BaseModel):
    purpose_and_context: str = ""
    current_state: str = ""
    approach_and_patterns: str = ""
    last_updated: datetime = Field(default_factory=utc_now)


class MemoryBank(BaseModel):
    queries: List[QueryRecord] = []
    reflections: Optional[UserReflections] = None
    total_query_count: int = 0


class StyleAssessment(BaseModel):
    """Style profile written from the user's assessment answers."""
    summary: str
    generated_at: datetime = Field(default_factory=utc_now)


# ============================================================================
# Reasoning model response shapes (validated at the boundary)
# ============================================================================
class _ModelResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")


class SuggestionDraft(_ModelResponse):
    description: str = Field(description='Specific piece, e.g. "Burgundy cropped wool jacket"')
    type: str = Field(description="Clothing type keyword")
    color: str = Field(default="", description="Primary color of the piece")
    style: str = Field(default="", description="Materials, fit, details")
    rationale: str = Field(description="Why this piece complements the wardrobe")
    compatible_piece_ids: List[Union[int, str]] = Field(
        default=[], description="IDs of existing wardrobe pieces this works with"
    )


class SuggestionDraftList(_ModelResponse):
    suggestions: List[SuggestionDraft]


class ProductCandidate(_ModelResponse):
    name: str
    retailer: str
    price: Optional[float] = None
    currency: Optional[str] = "USD"
    url: str
    image_url: Optional[str] = None

    @field_validator("price", mode="before")
    @classmethod
    def _clean_price(cls, value):
        # Convert "$89.99" style strings; non-positive prices mean "unknown"
        if isinstance(value, str):
            try:
                value = float(value.replace("$", "").replace(",", "").strip())
            except ValueError:
                return None
        if isinstance(value, (int, float)) and value <= 0:
            return None
        return value


class ProductCandidateList(_ModelResponse):
    products: List[ProductCandidate]


class UrlVerification(_ModelResponse):
    url: str
    is_valid: bool
    reason: str = ""
    image_url: Optional[str] = None
    available_sizes: Optional[List[str]] = None


class UrlVerificationList(_ModelResponse):
    results: List[UrlVerification]


class UserReflectionsDraft(_ModelResponse):
    purpose_and_context: str
    current_state: str
    approach_and_patterns: str


class StyleAssessmentDraft(_ModelResponse):
    summary: str
