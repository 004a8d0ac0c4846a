import asyncio
import logging

from sqlalchemy import select

from loanportal.core.security import get_password_hash
from loanportal.core.settings import settings
from loanportal.db.session import AsyncSessionLocal
from loanportal.models.user import User

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """
    Seed the database with the initial admin account.
    """
    async with AsyncSessionLocal() as session:
        stmt = select(User).where(User.email == settings.seed_admin_email.lower())
        result = await session.execute(stmt)
        user = result.scalar_one_or_none()

        if user:
            logger.info("Seed admin already exists")
            return

        session.add(
            User(
                email=settings.seed_admin_email.lower(),
                phone=settings.seed_admin_phone,
                hashed_password=get_password_hash(settings.seed_admin_password),
                first_name="System",
                last_name="Admin",
                role="admin",
                specialization=[],
                is_active=True,
                is_verified=True,
            )
        )
        await session.commit()
        logger.info("Seed admin created", extra={"email": settings.seed_admin_email})


if __name__ == "__main__":
    asyncio.run(init_db())
