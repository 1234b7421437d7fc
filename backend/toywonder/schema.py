"""
Pydantic schemas for the catalog, the broker and the API.
These define the structure of data flowing through the service.
"""
from enum import Enum
from typing import Optional, List, Literal, Tuple
from pydantic import AliasChoices, BaseModel, Field, ConfigDict, field_validator

Language = Literal["en", "bn"]
Category = Literal["Educational", "Outdoor Fun", "Plushies", "Arts & Crafts", "Robots", "Gifts"]


class Product(BaseModel):
    """Read-only catalog product."""
    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    name: str
    category: Category
    price: float = Field(gt=0)
    original_price: Optional[float] = Field(default=None, alias="originalPrice")
    rating: float = 0.0
    reviews: int = 0
    stock: int = Field(ge=0)
    badge: Optional[str] = None
    description: Optional[str] = None

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        # Catalog API documents use ObjectId-like `_id` values
        return str(value)

    @property
    def in_stock(self) -> bool:
        return self.stock > 0

    @property
    def popularity(self) -> float:
        return self.rating * self.reviews


class ChatTurn(BaseModel):
    """One turn of caller-owned conversation history."""
    role: Literal["user", "assistant"]
    text: str

    model_config = ConfigDict(frozen=True)


class RequestKind(str, Enum):
    CHAT = "chat"
    VOICE = "voice"
    RECOMMEND = "recommend"
    HISTORY_RECOMMEND = "history_recommend"
    GIFT = "gift"
    GENERATE_IMAGE = "generate_image"
    EDIT_IMAGE = "edit_image"

    @property
    def is_image(self) -> bool:
        return self in (RequestKind.GENERATE_IMAGE, RequestKind.EDIT_IMAGE)


class NormalizedRequest(BaseModel):
    """Canonical request built once per invocation by the intent normalizer."""
    kind: RequestKind
    text: Optional[str] = None
    image_bytes: Optional[bytes] = None
    mime_type: Optional[str] = None
    language: Language = "en"
    history: Tuple[ChatTurn, ...] = ()
    size: Optional[str] = None
    # gift: recipient / interests / price range; history_recommend: viewed names
    extras: Tuple[Tuple[str, str], ...] = ()

    model_config = ConfigDict(frozen=True)

    def extra(self, key: str, default: str = "") -> str:
        return dict(self.extras).get(key, default)

    def extra_list(self, key: str) -> List[str]:
        return [value for name, value in self.extras if name == key]


class ChatReply(BaseModel):
    """Delivered text answer and the strategy that produced it."""
    text: str
    source: str


class ImageResult(BaseModel):
    """Delivered image: a base64 data URI or an externally hosted URL."""
    image: str
    strategy: str
    edited: bool = False

    @property
    def is_data_uri(self) -> bool:
        return self.image.startswith("data:")


# ============================================================================
# API REQUEST / RESPONSE MODELS
# ============================================================================

class ChatRequest(BaseModel):
    """Request schema for chat endpoint."""
    message: str
    history: List[ChatTurn] = []
    language: str = "en"


class VoiceRequest(BaseModel):
    """Request schema for voice assistant endpoint."""
    message: str
    language: str = "en"


class SearchRecommendRequest(BaseModel):
    """Request schema for search recommendations."""
    search_query: str = Field(alias="searchQuery")
    language: str = "en"

    model_config = ConfigDict(populate_by_name=True)


class SearchRecommendResponse(BaseModel):
    categories: List[str]


class HistoryRecommendRequest(BaseModel):
    """Names of recently viewed products, most recent first."""
    history: List[str] = []


class HistoryRecommendResponse(BaseModel):
    products: List[Product]


class GiftRequest(BaseModel):
    """Request schema for gift suggestions."""
    recipient: str
    interests: str = ""
    price_range: str = Field(default="", alias="priceRange")
    language: str = "en"

    model_config = ConfigDict(populate_by_name=True)


class GenerateImageRequest(BaseModel):
    prompt: str
    size: str = "1024x1024"


class ImageResponse(BaseModel):
    """Response schema for image endpoints."""
    image: str
    is_data_uri: bool
    strategy: str
    edited: bool
