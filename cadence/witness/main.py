from __future__ import annotations

import asyncio
import sys

from loguru import logger

from .service import WitnessService
from .settings import settings


async def main() -> None:
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)
    logger.info(f"Starting {settings.service_name} v{settings.service_version}")
    svc = WitnessService(settings)
    await svc.start()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
