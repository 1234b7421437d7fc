"""
Provider strategy chain.

Each strategy wraps one remote service. Whatever goes wrong inside a strategy
(transport, auth, malformed or empty response, unsupported capability) comes
back as a ProviderResult.failure; nothing is raised past attempt(). A chain
runs its strategies one after another and stops at the first success.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

import httpx

from toywonder.core.constants import CatalogConstants, LimitsConstants
from toywonder.core.errors import ProviderFailure
from toywonder.core.gemini_client import GeminiClient, extract_inline_image, extract_predicted_image
from toywonder.core.keyless_image_client import KeylessImageClient
from toywonder.core.logging import get_logger
from toywonder.schema import ImageResult, NormalizedRequest, RequestKind
from toywonder.services.catalog_context import CatalogContextBuilder
from toywonder.utils.prompt_loader import PromptLoader

logger = get_logger("services.strategies")

LANGUAGE_NAMES = {"en": "English", "bn": "Bengali (Bangla)"}

# Status codes that mean "this provider cannot do this", not "try again later"
UNSUPPORTED_STATUS_CODES = {400, 403, 404}


@dataclass(frozen=True)
class ProviderResult:
    """Tagged outcome of a single strategy attempt."""
    ok: bool
    strategy: str
    payload: Any = None
    reason: str = ""
    unsupported: bool = False

    @classmethod
    def success(cls, strategy: str, payload: Any) -> "ProviderResult":
        return cls(ok=True, strategy=strategy, payload=payload)

    @classmethod
    def failure(cls, strategy: str, reason: str, unsupported: bool = False) -> "ProviderResult":
        return cls(ok=False, strategy=strategy, reason=reason, unsupported=unsupported)


@dataclass
class ChainOutcome:
    """Winning result (if any) plus every failure seen on the way."""
    winner: Optional[ProviderResult] = None
    failures: List[ProviderResult] = field(default_factory=list)


def _is_empty(payload: Any) -> bool:
    if payload is None:
        return True
    if isinstance(payload, str):
        return not payload.strip()
    if isinstance(payload, (list, tuple)):
        return len(payload) == 0
    return False


def _http_failure(exc: httpx.HTTPStatusError) -> ProviderFailure:
    status = exc.response.status_code
    detail = exc.response.text[:200]
    return ProviderFailure(f"HTTP {status}: {detail}".strip(), unsupported=status in UNSUPPORTED_STATUS_CODES)


def parse_category_list(text: str, limit: int = LimitsConstants.MAX_SEARCH_CATEGORIES) -> List[str]:
    """
    Parse a comma-separated category answer.

    Names are trimmed, mapped onto the fixed vocabulary (unknown names are
    dropped), de-duplicated keeping first occurrence, and capped at `limit`.
    """
    categories: List[str] = []
    for raw in text.replace("\n", ",").split(","):
        category = CatalogConstants.canonical_category(raw)
        if category and category not in categories:
            categories.append(category)
    return categories[:limit]


class Strategy(ABC):
    """One remote way of answering a request."""

    name: str = "strategy"

    @abstractmethod
    async def produce(self, request: NormalizedRequest) -> Any:
        """Return a payload or raise; attempt() turns errors into failures."""

    async def attempt(self, request: NormalizedRequest) -> ProviderResult:
        try:
            payload = await self.produce(request)
        except ProviderFailure as e:
            return ProviderResult.failure(self.name, e.reason, e.unsupported)
        except httpx.HTTPStatusError as e:
            failure = _http_failure(e)
            return ProviderResult.failure(self.name, failure.reason, failure.unsupported)
        except httpx.HTTPError as e:
            return ProviderResult.failure(self.name, f"{type(e).__name__}: {e}")
        except Exception as e:
            logger.exception(f"[{self.name}] Unexpected error")
            return ProviderResult.failure(self.name, f"Unexpected error: {e}")

        if _is_empty(payload):
            return ProviderResult.failure(self.name, "Provider returned an empty response")
        return ProviderResult.success(self.name, payload)


class StrategyChain:
    """Ordered strategies for one request kind, attempted sequentially."""

    def __init__(self, kind: RequestKind, strategies: Sequence[Strategy]):
        self.kind = kind
        self.strategies = list(strategies)

    async def run(self, request: NormalizedRequest) -> ChainOutcome:
        outcome = ChainOutcome()
        for strategy in self.strategies:
            result = await strategy.attempt(request)
            if result.ok:
                logger.info(f"[{self.kind.value}] {strategy.name} succeeded")
                outcome.winner = result
                return outcome

            logger.warning(f"[{self.kind.value}] {strategy.name} failed: {result.reason}")
            outcome.failures.append(result)
        return outcome


# ============================================================================
# TEXT STRATEGIES
# ============================================================================

class GeminiTextStrategy(Strategy):
    """Shared plumbing for the text kinds: catalog-grounded system prompt."""

    name = "gemini-text"

    def __init__(
        self,
        client: GeminiClient,
        context: CatalogContextBuilder,
        prompt_loader: PromptLoader,
    ):
        self.client = client
        self.context = context
        self.prompt_loader = prompt_loader

    def _language_name(self, request: NormalizedRequest) -> str:
        return LANGUAGE_NAMES.get(request.language, "English")


class ChatStrategy(GeminiTextStrategy):
    """GiftBot chat and voice replies."""

    def __init__(self, *args, history_limit: int = LimitsConstants.HISTORY_TURN_LIMIT, **kwargs):
        super().__init__(*args, **kwargs)
        self.history_limit = history_limit

    async def produce(self, request: NormalizedRequest) -> str:
        prompt_key = "voice" if request.kind == RequestKind.VOICE else "chat"
        instructions = self.prompt_loader.render(prompt_key, language_name=self._language_name(request))

        history = request.history[-self.history_limit:] if self.history_limit > 0 else ()
        messages = [{"role": turn.role, "content": turn.text} for turn in history]
        messages.append({"role": "user", "content": request.text})

        return await self.client.chat(messages, system=self.context.system_prompt(instructions))


class SearchCategoryStrategy(GeminiTextStrategy):
    """Ranks 3-4 categories for a search query."""

    async def produce(self, request: NormalizedRequest) -> List[str]:
        prompt = self.prompt_loader.render(
            "search_recommend",
            search_query=request.text,
            categories=", ".join(CatalogConstants.CATEGORIES),
        )
        text = await self.client.chat(
            [{"role": "user", "content": prompt}],
            system=self.context.system_prompt(),
            temperature=0.1,
        )
        categories = parse_category_list(text, LimitsConstants.MAX_SEARCH_CATEGORIES)
        if not categories:
            raise ProviderFailure(f"No known categories in response: {text[:100]!r}")
        return categories


class HistoryCategoryStrategy(GeminiTextStrategy):
    """Picks the top categories for a browsing history."""

    async def produce(self, request: NormalizedRequest) -> List[str]:
        count = LimitsConstants.MAX_HISTORY_CATEGORIES
        prompt = self.prompt_loader.render(
            "history_recommend",
            viewed=", ".join(request.extra_list("viewed")),
            count=count,
            categories=", ".join(CatalogConstants.CATEGORIES),
        )
        text = await self.client.chat(
            [{"role": "user", "content": prompt}],
            system=self.context.system_prompt(),
            temperature=0.1,
        )
        categories = parse_category_list(text, count)
        if not categories:
            raise ProviderFailure(f"No known categories in response: {text[:100]!r}")
        return categories


class GiftStrategy(GeminiTextStrategy):
    """Gift ideas for a recipient, interests and price range."""

    async def produce(self, request: NormalizedRequest) -> str:
        prompt = self.prompt_loader.render(
            "gift",
            recipient=request.extra("recipient"),
            interests=request.extra("interests") or "not specified",
            price_range=request.extra("price_range") or "any",
            language_name=self._language_name(request),
        )
        return await self.client.chat(
            [{"role": "user", "content": prompt}],
            system=self.context.system_prompt(),
        )


# ============================================================================
# IMAGE STRATEGIES
# ============================================================================

class ImageStrategy(Strategy):
    """Builds the decorated generation or edit prompt for a request."""

    def __init__(self, prompt_loader: PromptLoader):
        self.prompt_loader = prompt_loader

    def _prompt(self, request: NormalizedRequest) -> str:
        if request.kind == RequestKind.EDIT_IMAGE:
            return self.prompt_loader.render("edit", type="image", instruction=request.text)
        return self.prompt_loader.render("generation", type="image", prompt=request.text)

    def _source(self, request: NormalizedRequest):
        if request.kind == RequestKind.EDIT_IMAGE:
            return request.image_bytes, request.mime_type
        return None, None


class ImagenStrategy(ImageStrategy):
    """Strategy A: dedicated image-generation endpoint, one image."""

    name = "imagen"

    def __init__(self, client: GeminiClient, prompt_loader: PromptLoader):
        super().__init__(prompt_loader)
        self.client = client

    async def produce(self, request: NormalizedRequest) -> ImageResult:
        source, mime_type = self._source(request)
        response_json = await self.client.predict_images(
            self._prompt(request),
            size=request.size,
            source_image=source,
            mime_type=mime_type,
        )
        return ImageResult(
            image=extract_predicted_image(response_json),
            strategy=self.name,
            edited=request.kind == RequestKind.EDIT_IMAGE,
        )


class MultimodalImageStrategy(ImageStrategy):
    """Strategy B: text+image model, each configured variant in order."""

    name = "gemini-image"

    def __init__(self, client: GeminiClient, prompt_loader: PromptLoader, models: Sequence[str]):
        super().__init__(prompt_loader)
        self.client = client
        self.models = list(models)

    async def produce(self, request: NormalizedRequest) -> ImageResult:
        source, mime_type = self._source(request)
        prompt = self._prompt(request)
        failures: List[ProviderFailure] = []

        for model in self.models:
            try:
                response_json = await self.client.generate_image_content(
                    model, prompt, source_image=source, mime_type=mime_type
                )
                image = extract_inline_image(response_json)
            except ProviderFailure as e:
                failures.append(e)
            except httpx.HTTPStatusError as e:
                failures.append(_http_failure(e))
            except httpx.HTTPError as e:
                failures.append(ProviderFailure(f"{type(e).__name__}: {e}"))
            except (ValueError, KeyError, AttributeError, TypeError) as e:
                # Non-JSON body or unexpected response shape
                failures.append(ProviderFailure(f"Malformed response: {type(e).__name__}: {e}"))
            else:
                return ImageResult(
                    image=image,
                    strategy=f"{self.name}:{model}",
                    edited=request.kind == RequestKind.EDIT_IMAGE,
                )
            logger.warning(f"[{self.name}] Model {model} failed: {failures[-1].reason}")

        if not failures:
            raise ProviderFailure("No image models configured", unsupported=True)
        raise ProviderFailure(
            "; ".join(f.reason for f in failures),
            unsupported=all(f.unsupported for f in failures),
        )


class KeylessImageStrategy(ImageStrategy):
    """
    Strategy C: public image-by-URL service, no credential needed.

    It cannot take a source image, so an edit request degrades to a fresh
    generation from the instruction text; the result carries edited=False.
    """

    name = "keyless"

    def __init__(self, client: KeylessImageClient, prompt_loader: PromptLoader):
        super().__init__(prompt_loader)
        self.client = client

    async def produce(self, request: NormalizedRequest) -> ImageResult:
        if request.kind == RequestKind.EDIT_IMAGE:
            logger.info(f"[{self.name}] Source image dropped; generating from the instruction instead")

        prompt = self.prompt_loader.render("keyless", type="image", prompt=request.text)
        url = await self.client.render(prompt, size=request.size)
        return ImageResult(image=url, strategy=self.name, edited=False)
