"""
Intent normalizer.
Turns raw user input into an immutable NormalizedRequest, rejecting bad input
with a ValidationError before any strategy runs.
"""
from typing import Iterable, Optional, Sequence

from toywonder.core.constants import ImageConstants
from toywonder.core.errors import ValidationError
from toywonder.schema import ChatTurn, NormalizedRequest, RequestKind

LANGUAGES = ("en", "bn")


def _require_text(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(field, f"'{field}' must not be empty")
    return value.strip()


def _language(value: Optional[str]) -> str:
    language = (value or "en").strip().lower()
    if language not in LANGUAGES:
        raise ValidationError("language", f"Unsupported language '{value}', expected one of {', '.join(LANGUAGES)}")
    return language


def _history(turns: Optional[Iterable]) -> tuple:
    history = []
    for turn in turns or []:
        if isinstance(turn, ChatTurn):
            history.append(turn)
        elif isinstance(turn, dict):
            try:
                history.append(ChatTurn.model_validate(turn))
            except ValueError:
                raise ValidationError("history", f"Invalid history turn: {turn!r}")
        else:
            raise ValidationError("history", f"Invalid history turn: {turn!r}")
    return tuple(history)


def normalize_chat(
    message: Optional[str],
    history: Optional[Iterable] = None,
    language: Optional[str] = "en",
    voice: bool = False,
) -> NormalizedRequest:
    """Free-form chat (or voice transcript) with caller-owned history."""
    return NormalizedRequest(
        kind=RequestKind.VOICE if voice else RequestKind.CHAT,
        text=_require_text(message, "message"),
        history=_history(history),
        language=_language(language),
    )


def normalize_search(query: Optional[str], language: Optional[str] = "en") -> NormalizedRequest:
    """Search query for category recommendations."""
    return NormalizedRequest(
        kind=RequestKind.RECOMMEND,
        text=_require_text(query, "searchQuery"),
        language=_language(language),
    )


def normalize_history_recommend(viewed: Optional[Sequence[str]]) -> NormalizedRequest:
    """Recently viewed product names; an empty history is allowed."""
    names = [name.strip() for name in viewed or [] if name and name.strip()]
    return NormalizedRequest(
        kind=RequestKind.HISTORY_RECOMMEND,
        extras=tuple(("viewed", name) for name in names),
    )


def normalize_gift(
    recipient: Optional[str],
    interests: Optional[str] = "",
    price_range: Optional[str] = "",
    language: Optional[str] = "en",
) -> NormalizedRequest:
    """Gift suggestion request."""
    recipient = _require_text(recipient, "recipient")
    return NormalizedRequest(
        kind=RequestKind.GIFT,
        text=recipient,
        language=_language(language),
        extras=(
            ("recipient", recipient),
            ("interests", (interests or "").strip()),
            ("price_range", (price_range or "").strip()),
        ),
    )


def normalize_generation(prompt: Optional[str], size: Optional[str] = None) -> NormalizedRequest:
    """Image generation prompt and target size."""
    size = size or ImageConstants.DEFAULT_SIZE
    if size not in ImageConstants.SIZES:
        raise ValidationError("size", f"Unsupported size '{size}', expected one of {', '.join(ImageConstants.SIZES)}")
    return NormalizedRequest(
        kind=RequestKind.GENERATE_IMAGE,
        text=_require_text(prompt, "prompt"),
        size=size,
    )


def normalize_edit(
    image_bytes: Optional[bytes],
    mime_type: Optional[str],
    instruction: Optional[str],
) -> NormalizedRequest:
    """Source image plus edit instruction."""
    if not image_bytes:
        raise ValidationError("image", "Please upload an image first")

    mime_type = (mime_type or "").split(";")[0].strip().lower()
    subtype = mime_type[len(ImageConstants.ACCEPTED_MIME_PREFIX):]
    if not mime_type.startswith(ImageConstants.ACCEPTED_MIME_PREFIX) or not subtype:
        raise ValidationError("image", "Please upload a valid image file")

    if len(image_bytes) > ImageConstants.MAX_EDIT_IMAGE_BYTES:
        limit_mb = ImageConstants.MAX_EDIT_IMAGE_BYTES // (1024 * 1024)
        raise ValidationError("image", f"Image size should be less than {limit_mb}MB")

    return NormalizedRequest(
        kind=RequestKind.EDIT_IMAGE,
        text=_require_text(instruction, "instruction"),
        image_bytes=image_bytes,
        mime_type=mime_type,
        size=ImageConstants.DEFAULT_SIZE,
    )
