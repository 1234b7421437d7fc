"""
API routes for the AI-backed features: GiftBot chat, voice assistant,
recommendations, gift ideas and image generation/editing.
"""
from fastapi import APIRouter, Depends, File, Form, UploadFile

from toywonder.api.deps import get_broker
from toywonder.core.logging import get_logger
from toywonder.schema import (
    ChatReply,
    ChatRequest,
    GenerateImageRequest,
    GiftRequest,
    HistoryRecommendRequest,
    HistoryRecommendResponse,
    ImageResponse,
    ImageResult,
    SearchRecommendRequest,
    SearchRecommendResponse,
    VoiceRequest,
)
from toywonder.services.broker import ResponseBroker

logger = get_logger("api.ai")

router = APIRouter()


def _image_response(result: ImageResult) -> ImageResponse:
    return ImageResponse(
        image=result.image,
        is_data_uri=result.is_data_uri,
        strategy=result.strategy,
        edited=result.edited,
    )


@router.post("/chat", response_model=ChatReply)
async def chat(body: ChatRequest, broker: ResponseBroker = Depends(get_broker)):
    """
    GiftBot chat.

    - **message**: what the shopper typed
    - **history**: earlier turns, oldest first (only the most recent 20 are used)
    - **language**: `en` or `bn`

    Answers from the AI provider when configured, otherwise from the local
    rule-based responder. `source` tells which one produced the reply.
    """
    return await broker.chat(body.message, body.history, body.language)


@router.post("/voice", response_model=ChatReply)
async def voice(body: VoiceRequest, broker: ResponseBroker = Depends(get_broker)):
    """Short, speakable reply for the voice assistant."""
    return await broker.voice(body.message, body.language)


@router.post("/search-recommend", response_model=SearchRecommendResponse)
async def search_recommend(body: SearchRecommendRequest, broker: ResponseBroker = Depends(get_broker)):
    """Up to four catalog categories relevant to a search query, best first."""
    categories = await broker.search_recommend(body.search_query, body.language)
    return SearchRecommendResponse(categories=categories)


@router.post("/recommend", response_model=HistoryRecommendResponse)
async def recommend(body: HistoryRecommendRequest, broker: ResponseBroker = Depends(get_broker)):
    """Products related to the shopper's recently viewed items."""
    products = await broker.recommend_from_history(body.history)
    return HistoryRecommendResponse(products=products)


@router.post("/gift-suggestions", response_model=ChatReply)
async def gift_suggestions(body: GiftRequest, broker: ResponseBroker = Depends(get_broker)):
    """Gift ideas for a recipient, their interests and a price range."""
    return await broker.gift_suggestions(body.recipient, body.interests, body.price_range, body.language)


@router.post("/generate-image", response_model=ImageResponse)
async def generate_image(body: GenerateImageRequest, broker: ResponseBroker = Depends(get_broker)):
    """
    Generate an image from a prompt.

    The result is either a base64 data URI (can be saved directly) or an
    external URL (open it in a new tab to download).
    """
    result = await broker.generate_image(body.prompt, body.size)
    return _image_response(result)


@router.post("/edit-image", response_model=ImageResponse)
async def edit_image(
    image: UploadFile = File(...),
    instruction: str = Form(...),
    broker: ResponseBroker = Depends(get_broker),
):
    """
    Edit an uploaded image following an instruction.

    If only the keyless fallback service is reachable, a new image is
    generated from the instruction instead and `edited` is false.
    """
    image_bytes = await image.read()
    result = await broker.edit_image(image_bytes, image.content_type, instruction)
    return _image_response(result)
