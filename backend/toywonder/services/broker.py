"""
AI response broker.

Owns the provider clients and one strategy chain per request kind. With no
provider credential, the text kinds are answered by the heuristic responder
without any network I/O and the image kinds only try the keyless service.
With a credential, the full chain runs first; when it is exhausted the text
kinds fall back to the heuristics and the image kinds raise a TerminalError.
"""
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

import httpx

from toywonder.core.config import Settings, get_settings
from toywonder.core.errors import ChainExhausted, ErrorKind, TerminalError
from toywonder.core.gemini_client import GeminiClient
from toywonder.core.keyless_image_client import KeylessImageClient
from toywonder.core.logging import get_logger
from toywonder.core.constants import LimitsConstants
from toywonder.schema import ChatReply, ChatTurn, ImageResult, NormalizedRequest, Product, RequestKind
from toywonder.services import intent
from toywonder.services.catalog import CatalogStore
from toywonder.services.catalog_context import CatalogContextBuilder
from toywonder.services.heuristics import HeuristicResponder
from toywonder.services.strategies import (
    ChatStrategy,
    GiftStrategy,
    HistoryCategoryStrategy,
    ImagenStrategy,
    KeylessImageStrategy,
    MultimodalImageStrategy,
    ProviderResult,
    SearchCategoryStrategy,
    StrategyChain,
)
from toywonder.utils.prompt_loader import PromptLoader, get_prompt_loader

logger = get_logger("services.broker")

T = TypeVar("T")

HEURISTIC_SOURCE = "heuristic"

_IMAGE_ACTIONS = {
    RequestKind.GENERATE_IMAGE: ("Image generation", "generate"),
    RequestKind.EDIT_IMAGE: ("Image editing", "edit"),
}


class ResponseBroker:
    """Routes normalized requests through the strategy chains."""

    def __init__(
        self,
        catalog: CatalogStore,
        settings: Optional[Settings] = None,
        gemini: Optional[GeminiClient] = None,
        keyless: Optional[KeylessImageClient] = None,
        prompt_loader: Optional[PromptLoader] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.catalog = catalog
        self.prompt_loader = prompt_loader or get_prompt_loader()
        self.context = CatalogContextBuilder(catalog, self.prompt_loader)
        self.gemini = gemini or GeminiClient(self.settings, transport=transport)
        self.keyless = keyless or KeylessImageClient(self.settings, transport=transport)
        self.chains = self._build_chains()
        logger.info(f"Response broker ready ({self.state}, {len(catalog)} products)")

    @property
    def has_credential(self) -> bool:
        return self.settings.has_provider_credential

    @property
    def state(self) -> str:
        return "credential_present" if self.has_credential else "no_credential"

    @property
    def heuristics(self) -> HeuristicResponder:
        return HeuristicResponder(self.catalog.products)

    def set_catalog(self, catalog: CatalogStore):
        """Swap in a new catalog snapshot; the context cache follows it."""
        self.catalog = catalog
        self.context.set_catalog(catalog)

    def _build_chains(self) -> Dict[RequestKind, StrategyChain]:
        keyless = KeylessImageStrategy(self.keyless, self.prompt_loader)

        if not self.has_credential:
            chains = {kind: StrategyChain(kind, []) for kind in RequestKind if not kind.is_image}
            chains[RequestKind.GENERATE_IMAGE] = StrategyChain(RequestKind.GENERATE_IMAGE, [keyless])
            chains[RequestKind.EDIT_IMAGE] = StrategyChain(RequestKind.EDIT_IMAGE, [keyless])
            return chains

        text_args = (self.gemini, self.context, self.prompt_loader)
        chat = ChatStrategy(*text_args, history_limit=self.settings.history_turn_limit)
        image_strategies = [
            ImagenStrategy(self.gemini, self.prompt_loader),
            MultimodalImageStrategy(self.gemini, self.prompt_loader, self.settings.gemini_image_models),
            keyless,
        ]
        return {
            RequestKind.CHAT: StrategyChain(RequestKind.CHAT, [chat]),
            RequestKind.VOICE: StrategyChain(RequestKind.VOICE, [chat]),
            RequestKind.RECOMMEND: StrategyChain(RequestKind.RECOMMEND, [SearchCategoryStrategy(*text_args)]),
            RequestKind.HISTORY_RECOMMEND: StrategyChain(
                RequestKind.HISTORY_RECOMMEND, [HistoryCategoryStrategy(*text_args)]
            ),
            RequestKind.GIFT: StrategyChain(RequestKind.GIFT, [GiftStrategy(*text_args)]),
            RequestKind.GENERATE_IMAGE: StrategyChain(RequestKind.GENERATE_IMAGE, image_strategies),
            RequestKind.EDIT_IMAGE: StrategyChain(RequestKind.EDIT_IMAGE, image_strategies),
        }

    async def _run_chain(self, request: NormalizedRequest) -> ProviderResult:
        """First successful result, or ChainExhausted."""
        chain = self.chains[request.kind]
        outcome = await chain.run(request)
        if outcome.winner is None:
            raise ChainExhausted(request.kind.value, outcome.failures)
        return outcome.winner

    async def _with_fallback(self, request: NormalizedRequest, fallback: Callable[[], T]) -> ProviderResult:
        try:
            return await self._run_chain(request)
        except ChainExhausted as e:
            if e.failures:
                logger.info(f"[{request.kind.value}] Chain exhausted, answering from heuristics")
            return ProviderResult.success(HEURISTIC_SOURCE, fallback())

    def _terminal_error(self, kind: RequestKind, exhausted: ChainExhausted) -> TerminalError:
        action, verb = _IMAGE_ACTIONS[kind]
        if not self.has_credential:
            return TerminalError(
                f"{action} needs a GEMINI_API_KEY and the free image service could not be reached. "
                f"Please add your GEMINI_API_KEY to the .env file or try again later.",
                ErrorKind.CAPABILITY_UNSUPPORTED,
            )
        if exhausted.any_unsupported:
            return TerminalError(
                f"{action} is not available with your current API configuration. "
                f"Try using a different model or upgrading your API plan.",
                ErrorKind.CAPABILITY_UNSUPPORTED,
            )
        return TerminalError(
            f"Failed to {verb} image. Please try again in a moment.",
            ErrorKind.GENERIC_FAILURE,
        )

    async def _image(self, request: NormalizedRequest) -> ImageResult:
        try:
            result = await self._run_chain(request)
        except ChainExhausted as e:
            logger.error(f"[{request.kind.value}] {e}")
            raise self._terminal_error(request.kind, e) from e
        return result.payload

    # ------------------------------------------------------------------
    # Inbound operations
    # ------------------------------------------------------------------

    async def handle_text(self, request: NormalizedRequest) -> ChatReply:
        """Chat, voice and gift requests."""
        responder = self.heuristics
        if request.kind == RequestKind.GIFT:
            fallback = lambda: responder.gift_suggestion(
                request.extra("recipient"),
                request.extra("interests"),
                request.extra("price_range"),
                request.language,
            ).text
        else:
            fallback = lambda: responder.respond(request.text, request.language).text

        result = await self._with_fallback(request, fallback)
        return ChatReply(text=result.payload, source=result.strategy)

    async def chat(
        self,
        message: str,
        history: Optional[Sequence[ChatTurn]] = None,
        language: str = "en",
    ) -> ChatReply:
        return await self.handle_text(intent.normalize_chat(message, history, language))

    async def voice(self, message: str, language: str = "en") -> ChatReply:
        return await self.handle_text(intent.normalize_chat(message, language=language, voice=True))

    async def gift_suggestions(
        self,
        recipient: str,
        interests: str = "",
        price_range: str = "",
        language: str = "en",
    ) -> ChatReply:
        return await self.handle_text(intent.normalize_gift(recipient, interests, price_range, language))

    async def search_recommend(self, query: str, language: str = "en") -> List[str]:
        """Up to four category names, most relevant first."""
        request = intent.normalize_search(query, language)
        responder = self.heuristics
        result = await self._with_fallback(request, lambda: responder.recommend_categories(request.text))
        return list(result.payload)

    async def recommend_from_history(self, viewed: Sequence[str]) -> List[Product]:
        """Products related to recently viewed items."""
        request = intent.normalize_history_recommend(viewed)
        responder = self.heuristics
        names = request.extra_list("viewed")
        if not names:
            return responder.recommend_from_history(names)

        result = await self._with_fallback(request, lambda: responder.recommend_from_history(names))
        if result.strategy == HEURISTIC_SOURCE:
            return result.payload

        products = self.catalog.in_category(result.payload)[:LimitsConstants.MAX_HISTORY_RECOMMENDATIONS]
        if not products:
            logger.info("No products in the suggested categories, answering from heuristics")
            return responder.recommend_from_history(names)
        return products

    async def generate_image(self, prompt: str, size: Optional[str] = None) -> ImageResult:
        return await self._image(intent.normalize_generation(prompt, size))

    async def edit_image(self, image_bytes: bytes, mime_type: str, instruction: str) -> ImageResult:
        """
        Edit an uploaded image.

        When only the keyless service succeeds the result is a new image
        generated from the instruction alone, reported with edited=False.
        """
        return await self._image(intent.normalize_edit(image_bytes, mime_type, instruction))
