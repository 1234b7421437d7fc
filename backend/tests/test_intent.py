"""
Tests for the intent normalizer.
"""
import sys
from pathlib import Path

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from toywonder.core.constants import ImageConstants
from toywonder.core.errors import ValidationError
from toywonder.schema import ChatTurn, RequestKind
from toywonder.services.intent import (
    normalize_chat,
    normalize_edit,
    normalize_generation,
    normalize_gift,
    normalize_history_recommend,
    normalize_search,
)

PNG = b"\x89PNG\r\n\x1a\nfake"


@pytest.mark.parametrize("message", ["", "   ", None])
def test_chat_rejects_empty_message(message):
    with pytest.raises(ValidationError) as exc:
        normalize_chat(message)
    assert exc.value.field == "message"


def test_chat_rejects_unknown_language():
    with pytest.raises(ValidationError) as exc:
        normalize_chat("hi", language="fr")
    assert exc.value.field == "language"


def test_chat_coerces_history_dicts():
    request = normalize_chat(
        "  and for a baby?  ",
        history=[{"role": "user", "text": "robots?"}, ChatTurn(role="assistant", text="Super Galactic Robot!")],
        language="BN",
    )

    assert request.kind == RequestKind.CHAT
    assert request.text == "and for a baby?"
    assert request.language == "bn"
    assert [t.role for t in request.history] == ["user", "assistant"]


def test_chat_rejects_malformed_history():
    with pytest.raises(ValidationError) as exc:
        normalize_chat("hi", history=[{"role": "system", "text": "x"}])
    assert exc.value.field == "history"


def test_voice_kind():
    assert normalize_chat("hello", voice=True).kind == RequestKind.VOICE


def test_search_requires_query():
    with pytest.raises(ValidationError) as exc:
        normalize_search(" ")
    assert exc.value.field == "searchQuery"


def test_history_recommend_allows_empty_and_drops_blanks():
    assert normalize_history_recommend([]).extra_list("viewed") == []
    assert normalize_history_recommend(["Cuddly Elephant", " ", ""]).extra_list("viewed") == ["Cuddly Elephant"]


def test_gift_requires_recipient():
    with pytest.raises(ValidationError) as exc:
        normalize_gift("", interests="lego")
    assert exc.value.field == "recipient"

    request = normalize_gift("my nephew", "dinosaurs", "₹500 - ₹1500")
    assert request.extra("price_range") == "₹500 - ₹1500"


def test_generation_validates_size():
    assert normalize_generation("a dragon").size == ImageConstants.DEFAULT_SIZE

    with pytest.raises(ValidationError) as exc:
        normalize_generation("a dragon", size="300x300")
    assert exc.value.field == "size"


def test_edit_requires_image():
    with pytest.raises(ValidationError) as exc:
        normalize_edit(b"", "image/png", "add a hat")
    assert exc.value.field == "image"


def test_edit_rejects_unsupported_mime():
    with pytest.raises(ValidationError) as exc:
        normalize_edit(PNG, "application/pdf", "add a hat")
    assert exc.value.field == "image"


def test_edit_rejects_oversized_image():
    too_big = b"\x00" * (ImageConstants.MAX_EDIT_IMAGE_BYTES + 1)
    with pytest.raises(ValidationError) as exc:
        normalize_edit(too_big, "image/png", "add a hat")
    assert "10MB" in exc.value.message


def test_edit_requires_instruction():
    with pytest.raises(ValidationError) as exc:
        normalize_edit(PNG, "image/png", "  ")
    assert exc.value.field == "instruction"


def test_edit_normalizes_mime():
    request = normalize_edit(PNG, "Image/PNG; charset=binary", "add a hat")

    assert request.mime_type == "image/png"
    assert request.image_bytes == PNG
    assert request.kind.is_image


@pytest.mark.parametrize("mime_type", ["image/avif", "image/bmp", "image/svg+xml"])
def test_edit_accepts_any_image_subtype(mime_type):
    assert normalize_edit(PNG, mime_type, "add a hat").mime_type == mime_type


def test_edit_rejects_bare_image_prefix():
    with pytest.raises(ValidationError) as exc:
        normalize_edit(PNG, "image/", "add a hat")
    assert exc.value.field == "image"
