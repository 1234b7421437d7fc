"""
Tests for the response broker, driven through a fake provider transport.
"""
import sys
import base64
import asyncio
from pathlib import Path

import httpx
import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from conftest import (
    IMAGE_MODELS,
    IMAGEN_MODEL,
    TEXT_MODEL,
    FakeProviders,
    imagen_response,
    inline_image_response,
    keyless_ok,
    make_product,
    status,
    text_response,
)
from toywonder.core.config import PLACEHOLDER_API_KEY, Settings
from toywonder.core.errors import ErrorKind, TerminalError, ValidationError
from toywonder.schema import ChatTurn
from toywonder.services.broker import HEURISTIC_SOURCE
from toywonder.services.catalog import CatalogStore
from toywonder.services.heuristics import TEMPLATES

CHAT = f"{TEXT_MODEL}:generateContent"
IMAGEN = f"{IMAGEN_MODEL}:predict"
MODEL_1 = f"{IMAGE_MODELS[0]}:generateContent"
MODEL_2 = f"{IMAGE_MODELS[1]}:generateContent"

PNG = b"\x89PNG\r\n\x1a\nsource-image"


def _system_text(body: dict) -> str:
    return body["systemInstruction"]["parts"][0]["text"]


# ============================================================================
# STATE
# ============================================================================

def test_placeholder_key_means_no_credential(make_broker):
    broker = make_broker(Settings(gemini_api_key=PLACEHOLDER_API_KEY, _env_file=None), FakeProviders())

    assert broker.state == "no_credential"


def test_no_credential_greeting_makes_no_calls(keyless_settings, make_broker):
    fake = FakeProviders()
    broker = make_broker(keyless_settings, fake)

    reply = asyncio.run(broker.chat("hi"))

    assert reply.text == TEMPLATES["en"]["greeting"]
    assert reply.source == HEURISTIC_SOURCE
    assert fake.calls == []


def test_no_credential_search_uses_keyword_table(keyless_settings, make_broker):
    fake = FakeProviders()
    broker = make_broker(keyless_settings, fake)

    categories = asyncio.run(broker.search_recommend("stuffed animal"))

    assert categories[0] == "Plushies"
    assert fake.calls == []


def test_invalid_input_rejected_before_any_call(keyed_settings, make_broker):
    fake = FakeProviders({CHAT: lambda r: text_response("unused")})
    broker = make_broker(keyed_settings, fake)

    with pytest.raises(ValidationError):
        asyncio.run(broker.chat("   "))
    with pytest.raises(ValidationError):
        asyncio.run(broker.generate_image("a kite", size="12x12"))
    assert fake.calls == []


# ============================================================================
# TEXT KINDS
# ============================================================================

def test_chat_grounded_in_catalog(keyed_settings, make_broker):
    fake = FakeProviders({CHAT: lambda r: text_response("Try the Speed Racer RC (₹3,499)! 🚗")})
    broker = make_broker(keyed_settings, fake)

    reply = asyncio.run(broker.chat("something fast", language="en"))

    assert reply.source == "gemini-text"
    assert "Speed Racer RC" in reply.text
    assert fake.keys == [CHAT]
    assert fake.calls[0].headers["x-goog-api-key"] == "test-key"

    system = _system_text(fake.body(0))
    assert "Never invent products" in system
    assert "Speed Racer RC (₹3,499, was ₹4,374)" in system
    assert "English" in system


def test_chat_keeps_last_twenty_turns(keyed_settings, make_broker):
    fake = FakeProviders({CHAT: lambda r: text_response("ok")})
    broker = make_broker(keyed_settings, fake)
    history = [
        ChatTurn(role="user" if i % 2 == 0 else "assistant", text=f"turn {i}")
        for i in range(30)
    ]

    asyncio.run(broker.chat("latest question", history=history))

    contents = fake.body(0)["contents"]
    assert len(contents) == 21
    assert contents[0]["parts"][0]["text"] == "turn 10"
    assert contents[1]["role"] == "model"
    assert contents[-1] == {"role": "user", "parts": [{"text": "latest question"}]}


def test_voice_uses_spoken_instructions(keyed_settings, make_broker):
    fake = FakeProviders({CHAT: lambda r: text_response("The Cuddly Elephant is lovely")})
    broker = make_broker(keyed_settings, fake)

    reply = asyncio.run(broker.voice("a soft toy", language="bn"))

    assert reply.source == "gemini-text"
    system = _system_text(fake.body(0))
    assert "read aloud" in system
    assert "Bengali" in system


@pytest.mark.parametrize("handler", [status(500), lambda r: text_response("   ")])
def test_chat_falls_back_to_heuristics(keyed_settings, make_broker, handler):
    fake = FakeProviders({CHAT: handler})
    broker = make_broker(keyed_settings, fake)

    reply = asyncio.run(broker.chat("hi"))

    assert reply.source == HEURISTIC_SOURCE
    assert reply.text == TEMPLATES["en"]["greeting"]
    assert fake.keys == [CHAT]


def test_search_parses_dedupes_and_caps(keyed_settings, make_broker):
    fake = FakeProviders({CHAT: lambda r: text_response("Robots, robots, Educational, Unicorns, Plushies, Gifts, Outdoor Fun")})
    broker = make_broker(keyed_settings, fake)

    categories = asyncio.run(broker.search_recommend("coding robot"))

    assert categories == ["Robots", "Educational", "Plushies", "Gifts"]
    body = fake.body(0)
    assert body["generationConfig"]["temperature"] == 0.1
    assert "coding robot" in body["contents"][0]["parts"][0]["text"]


def test_search_without_known_categories_falls_back(keyed_settings, make_broker):
    fake = FakeProviders({CHAT: lambda r: text_response("Sorry, I cannot help with that.")})
    broker = make_broker(keyed_settings, fake)

    categories = asyncio.run(broker.search_recommend("teddy bear"))

    assert categories[0] == "Plushies"


def test_history_recommend_uses_suggested_categories(keyed_settings, make_broker):
    fake = FakeProviders({CHAT: lambda r: text_response("Plushies")})
    broker = make_broker(keyed_settings, fake)

    products = asyncio.run(broker.recommend_from_history(["Cuddly Elephant"]))

    assert [p.name for p in products] == ["Cuddly Elephant", "Cuddly Brown Bear"]
    assert "Cuddly Elephant" in fake.body(0)["contents"][0]["parts"][0]["text"]


def test_empty_history_makes_no_calls(keyed_settings, make_broker):
    fake = FakeProviders({CHAT: lambda r: text_response("Robots")})
    broker = make_broker(keyed_settings, fake)

    products = asyncio.run(broker.recommend_from_history([]))

    assert [p.id for p in products] == ["1", "2", "3"]
    assert fake.calls == []


def test_gift_failure_falls_back_with_recipient(keyed_settings, make_broker):
    fake = FakeProviders({CHAT: status(503)})
    broker = make_broker(keyed_settings, fake)

    reply = asyncio.run(broker.gift_suggestions("my niece", "painting", "₹1000 - ₹3000"))

    assert reply.source == HEURISTIC_SOURCE
    assert "my niece" in reply.text
    assert "Castle Builder Set" not in reply.text


def test_catalog_swap_changes_next_prompt(keyed_settings, make_broker):
    fake = FakeProviders({CHAT: lambda r: text_response("ok")})
    broker = make_broker(keyed_settings, fake)

    asyncio.run(broker.chat("what's new?"))
    broker.set_catalog(CatalogStore([make_product(id="42", name="Kite Flyer", category="Outdoor Fun")]))
    asyncio.run(broker.chat("what's new?"))

    assert "Speed Racer RC" in _system_text(fake.body(0))
    second = _system_text(fake.body(1))
    assert "Kite Flyer" in second
    assert "Speed Racer RC" not in second


# ============================================================================
# IMAGE KINDS
# ============================================================================

def test_imagen_success_short_circuits(keyed_settings, make_broker):
    fake = FakeProviders({IMAGEN: lambda r: imagen_response("aW1hZ2Vu", "image/png")})
    broker = make_broker(keyed_settings, fake)

    result = asyncio.run(broker.generate_image("a robot dinosaur", "2048x2048"))

    assert result.image == "data:image/png;base64,aW1hZ2Vu"
    assert result.is_data_uri
    assert result.strategy == "imagen"
    assert fake.keys == [IMAGEN]
    body = fake.body(0)
    assert "a robot dinosaur" in body["instances"][0]["prompt"]
    assert body["parameters"]["sampleCount"] == 1
    assert body["parameters"]["sampleImageSize"] == "2K"


def test_generation_falls_through_to_keyless(keyed_settings, make_broker):
    fake = FakeProviders({
        IMAGEN: status(500),
        MODEL_1: status(400),
        MODEL_2: status(400),
        "keyless": keyless_ok,
    })
    broker = make_broker(keyed_settings, fake)

    result = asyncio.run(broker.generate_image("a dragon plush", "1024x1024"))

    assert fake.keys == [IMAGEN, MODEL_1, MODEL_2, "keyless"]
    assert result.strategy == "keyless"
    assert not result.is_data_uri
    assert result.image.startswith("https://image.pollinations.ai/prompt/a%20dragon%20plush")
    assert "width=1024" in result.image and "height=1024" in result.image


def test_multimodal_edit_sends_source_image(keyed_settings, make_broker):
    fake = FakeProviders({
        IMAGEN: status(500),
        MODEL_1: lambda r: inline_image_response("ZWRpdGVk", "image/png"),
    })
    broker = make_broker(keyed_settings, fake)

    result = asyncio.run(broker.edit_image(PNG, "image/png", "add a party hat"))

    assert result.edited
    assert result.strategy == f"gemini-image:{IMAGE_MODELS[0]}"
    assert result.image == "data:image/png;base64,ZWRpdGVk"
    assert fake.keys == [IMAGEN, MODEL_1]

    parts = fake.body(1)["contents"][0]["parts"]
    assert parts[0]["inlineData"]["mimeType"] == "image/png"
    assert base64.b64decode(parts[0]["inlineData"]["data"]) == PNG
    assert "add a party hat" in parts[1]["text"]
    assert fake.body(1)["generationConfig"]["responseModalities"] == ["TEXT", "IMAGE"]


def test_multimodal_model_without_image_part_tries_next(keyed_settings, make_broker):
    fake = FakeProviders({
        IMAGEN: status(404),
        MODEL_1: lambda r: text_response("I can only describe images."),
        MODEL_2: lambda r: inline_image_response("c2Vjb25k"),
    })
    broker = make_broker(keyed_settings, fake)

    result = asyncio.run(broker.generate_image("a teddy astronaut"))

    assert result.strategy == f"gemini-image:{IMAGE_MODELS[1]}"
    assert fake.keys == [IMAGEN, MODEL_1, MODEL_2]


@pytest.mark.parametrize("malformed", [
    lambda r: httpx.Response(200, text="<html>proxy</html>"),
    lambda r: httpx.Response(200, json={"candidates": [{"content": {"parts": ["oops", {"inlineData": "x"}]}}]}),
    lambda r: httpx.Response(200, json={"candidates": "not-a-list"}),
])
def test_malformed_model_response_tries_next_variant(keyed_settings, make_broker, malformed):
    fake = FakeProviders({
        IMAGEN: status(500),
        MODEL_1: malformed,
        MODEL_2: lambda r: inline_image_response("c2Vjb25k"),
        "keyless": status(503),
    })
    broker = make_broker(keyed_settings, fake)

    result = asyncio.run(broker.generate_image("a teddy astronaut"))

    assert fake.keys == [IMAGEN, MODEL_1, MODEL_2]
    assert result.strategy == f"gemini-image:{IMAGE_MODELS[1]}"
    assert result.image == "data:image/png;base64,c2Vjb25k"


def test_edit_degrades_to_generation_on_keyless(keyed_settings, make_broker):
    fake = FakeProviders({
        IMAGEN: status(404),
        MODEL_1: status(404),
        MODEL_2: status(404),
        "keyless": keyless_ok,
    })
    broker = make_broker(keyed_settings, fake)

    result = asyncio.run(broker.edit_image(PNG, "image/png", "add a party hat"))

    assert result.strategy == "keyless"
    assert result.edited is False
    assert "add%20a%20party%20hat" in result.image


def test_no_credential_image_uses_keyless_only(keyless_settings, make_broker):
    fake = FakeProviders({"keyless": keyless_ok})
    broker = make_broker(keyless_settings, fake)

    result = asyncio.run(broker.generate_image("a unicorn kite"))

    assert fake.keys == ["keyless"]
    assert result.strategy == "keyless"


def test_no_credential_image_failure_is_unsupported(keyless_settings, make_broker):
    fake = FakeProviders({"keyless": status(503)})
    broker = make_broker(keyless_settings, fake)

    with pytest.raises(TerminalError) as exc:
        asyncio.run(broker.generate_image("a unicorn kite"))

    assert exc.value.error_kind == ErrorKind.CAPABILITY_UNSUPPORTED
    assert exc.value.remediation == "reconfigure"
    assert "GEMINI_API_KEY" in exc.value.message
    assert fake.keys == ["keyless"]


def test_unsupported_capability_terminal_error(keyed_settings, make_broker):
    fake = FakeProviders({
        IMAGEN: status(404),
        MODEL_1: status(400),
        MODEL_2: status(400),
        "keyless": lambda r: httpx.Response(200, headers={"content-type": "text/html"}, text="<html>"),
    })
    broker = make_broker(keyed_settings, fake)

    with pytest.raises(TerminalError) as exc:
        asyncio.run(broker.generate_image("a castle"))

    assert exc.value.error_kind == ErrorKind.CAPABILITY_UNSUPPORTED
    assert exc.value.remediation == "reconfigure"


def test_generic_terminal_error(keyed_settings, make_broker):
    def slow(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("image took too long", request=request)

    fake = FakeProviders({
        IMAGEN: status(500),
        MODEL_1: status(500),
        MODEL_2: status(503),
        "keyless": slow,
    })
    broker = make_broker(keyed_settings, fake)

    with pytest.raises(TerminalError) as exc:
        asyncio.run(broker.edit_image(PNG, "image/png", "make it blue"))

    assert exc.value.error_kind == ErrorKind.GENERIC_FAILURE
    assert exc.value.remediation == "retry"
    assert fake.keys == [IMAGEN, MODEL_1, MODEL_2, "keyless"]
