"""
Gemini client for text and image operations.
Talks to the Generative Language REST API; the parse helpers at the bottom
are the only place that knows the response shapes.
"""
import base64
from typing import Any, Dict, List, Optional

from toywonder.core.base_client import BaseAIClient
from toywonder.core.constants import ImageConstants
from toywonder.core.errors import ProviderFailure
from toywonder.core.logging import get_logger

logger = get_logger("core.gemini_client")


class GeminiClient(BaseAIClient):
    """Client for interacting with Gemini and Imagen models."""

    def _headers(self) -> Dict[str, str]:
        if not self.settings.has_provider_credential:
            raise ProviderFailure("Gemini API key is not configured", unsupported=True)
        return {"x-goog-api-key": self.settings.gemini_api_key.strip()}

    def _model_url(self, model: str, method: str) -> str:
        return f"{self.settings.gemini_base_url.rstrip('/')}/models/{model}:{method}"

    async def generate_content(
        self,
        model: str,
        contents: List[Dict[str, Any]],
        system: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Call models/{model}:generateContent and return the raw JSON."""
        payload: Dict[str, Any] = {"contents": contents}
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}
        if generation_config:
            payload["generationConfig"] = generation_config

        return await self._make_request(
            self._model_url(model, "generateContent"),
            payload,
            headers=self._headers(),
            log_prefix=f"Gemini {model}",
        )

    async def chat(
        self,
        messages: List[Dict[str, str]],
        system: Optional[str] = None,
        temperature: float = 0.7,
    ) -> str:
        """
        Chat-style interaction with the text model.

        Args:
            messages: List of message dicts with 'role' and 'content'
            system: Optional system instruction
            temperature: Sampling temperature (0.0-1.0)

        Returns:
            Non-empty response text

        Raises:
            ProviderFailure: If the call fails or the model returns no text
        """
        contents = []
        for msg in messages:
            role = "model" if msg.get("role") == "assistant" else "user"
            contents.append({"role": role, "parts": [{"text": msg.get("content", "")}]})

        response_json = await self.generate_content(
            self.settings.gemini_text_model,
            contents,
            system=system,
            generation_config={"temperature": temperature},
        )
        return extract_text(response_json)

    async def generate_image_content(
        self,
        model: str,
        prompt: str,
        source_image: Optional[bytes] = None,
        mime_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Ask a multimodal model for a TEXT+IMAGE response."""
        parts: List[Dict[str, Any]] = []
        if source_image is not None:
            parts.append({
                "inlineData": {
                    "mimeType": mime_type or "image/png",
                    "data": base64.b64encode(source_image).decode("utf-8"),
                }
            })
        parts.append({"text": prompt})

        return await self.generate_content(
            model,
            [{"role": "user", "parts": parts}],
            generation_config={"responseModalities": ["TEXT", "IMAGE"]},
        )

    async def predict_images(
        self,
        prompt: str,
        size: str = ImageConstants.DEFAULT_SIZE,
        source_image: Optional[bytes] = None,
        mime_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Call the Imagen :predict endpoint for a single image."""
        instance: Dict[str, Any] = {"prompt": prompt}
        if source_image is not None:
            instance["image"] = {
                "bytesBase64Encoded": base64.b64encode(source_image).decode("utf-8"),
                "mimeType": mime_type or "image/png",
            }

        payload = {
            "instances": [instance],
            "parameters": {
                "sampleCount": 1,
                "aspectRatio": "1:1",
                "sampleImageSize": ImageConstants.IMAGEN_SAMPLE_SIZES.get(size, "1K"),
            },
        }
        model = self.settings.gemini_imagen_model
        return await self._make_request(
            self._model_url(model, "predict"),
            payload,
            headers=self._headers(),
            log_prefix=f"Imagen {model}",
        )


# ============================================================================
# RESPONSE PARSING
# ============================================================================

def _candidate_parts(response_json: Dict[str, Any]) -> List[Dict[str, Any]]:
    candidates = response_json.get("candidates") or []
    if not candidates:
        feedback = response_json.get("promptFeedback") or {}
        reason = feedback.get("blockReason")
        raise ProviderFailure(f"No candidates returned (blockReason={reason})" if reason else "No candidates returned")
    content = candidates[0].get("content") or {}
    return content.get("parts") or []


def extract_text(response_json: Dict[str, Any]) -> str:
    """Join the text parts of the first candidate; empty text is a failure."""
    parts = _candidate_parts(response_json)
    text = "".join(part.get("text", "") for part in parts if isinstance(part, dict)).strip()
    if not text:
        raise ProviderFailure("Model returned empty text")
    return text


def extract_inline_image(response_json: Dict[str, Any]) -> str:
    """Return the first inline image part as a data URI."""
    for part in _candidate_parts(response_json):
        if not isinstance(part, dict):
            continue
        inline = part.get("inlineData") or part.get("inline_data")
        if isinstance(inline, dict) and inline.get("data"):
            mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
            return f"data:{mime_type};base64,{inline['data']}"
    raise ProviderFailure(
        "No image was returned. The model may not support image output with the current API plan.",
        unsupported=True,
    )


def extract_predicted_image(response_json: Dict[str, Any]) -> str:
    """Return the first Imagen prediction as a data URI."""
    for prediction in response_json.get("predictions") or []:
        data = prediction.get("bytesBase64Encoded")
        if data:
            mime_type = prediction.get("mimeType") or "image/png"
            return f"data:{mime_type};base64,{data}"
    raise ProviderFailure("Imagen returned no predictions", unsupported=True)
