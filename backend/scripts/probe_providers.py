#!/usr/bin/env python3
"""
Probe the configured AI providers through the response broker.
Runs one chat, one search recommendation and (optionally) one image
generation, and reports which strategy answered each.
"""
import sys
import asyncio
import logging
import argparse
from pathlib import Path

# Add backend to path
backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))

from toywonder.core.config import get_settings
from toywonder.core.errors import TerminalError
from toywonder.services.broker import ResponseBroker
from toywonder.services.catalog import load_catalog

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def probe(message: str, query: str, image_prompt: str | None) -> int:
    settings = get_settings()
    catalog = await load_catalog(settings)
    broker = ResponseBroker(catalog, settings=settings)
    logger.info(f"Broker state: {broker.state}")

    reply = await broker.chat(message)
    logger.info(f"Chat answered by {reply.source}: {reply.text[:200]}")

    categories = await broker.search_recommend(query)
    logger.info(f"Search '{query}' -> {categories}")

    if image_prompt:
        try:
            result = await broker.generate_image(image_prompt)
        except TerminalError as e:
            logger.error(f"Image generation failed ({e.error_kind.value}): {e.message}")
            return 1
        kind = "data URI" if result.is_data_uri else result.image
        logger.info(f"Image generated by {result.strategy}: {kind}")

    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Probe ToyWonder AI providers")
    parser.add_argument("--message", default="Gift ideas for a 5 year old who loves painting")
    parser.add_argument("--query", default="stuffed animal")
    parser.add_argument("--image", default=None, help="Also try generating an image for this prompt")
    args = parser.parse_args()

    sys.exit(asyncio.run(probe(args.message, args.query, args.image)))
