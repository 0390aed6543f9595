"""Protean Engine runner for the storefront domain.

Starts Engine workers that process events asynchronously:
- OutboxProcessor: polls outbox table, publishes events to Redis Streams
- StreamSubscriptions: reads Redis Streams, invokes projectors and event handlers

Usage:
    python src/server.py
"""

import asyncio

from protean.server.engine import Engine

from storefront.domain import storefront
from storefront.utils.logging import configure_logging


async def run():
    storefront.init()
    engine = Engine(storefront)
    await engine.run()


def main():
    configure_logging()
    asyncio.run(run())


if __name__ == "__main__":
    main()
