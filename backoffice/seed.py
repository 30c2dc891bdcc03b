"""Bootstrap the root superuser: ``python -m backoffice.seed``.

Reads ``SEED_SUPERUSER_EMAIL`` / ``SEED_SUPERUSER_PASSWORD``; safe to re-run.
"""

import asyncio
import logging

from backoffice.core.config import get_settings
from backoffice.core.database import async_session_factory, init_db
from backoffice.services.users import ensure_superuser

logger = logging.getLogger(__name__)


async def main() -> None:
    settings = get_settings()
    await init_db()
    async with async_session_factory() as session:
        user = await ensure_superuser(
            session, settings.seed_superuser_email, settings.seed_superuser_password
        )
    logger.info("Seed complete (superuser %s)", user.id)


if __name__ == "__main__":
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    asyncio.run(main())
