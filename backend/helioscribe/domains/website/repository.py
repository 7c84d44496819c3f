"""Website repository for database operations."""

from typing import List, Optional
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from helioscribe.domains.website.models import Website


def normalize_domain(domain: str) -> str:
    return (domain or "").strip().lower()


class WebsiteRepository:
    """Repository for website database operations."""

    async def get_by_domain(self, session: AsyncSession, domain: str) -> Optional[Website]:
        stmt = select(Website).where(Website.domain == normalize_domain(domain))
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def domain_exists(self, session: AsyncSession, domain: str) -> bool:
        return await self.get_by_domain(session, domain) is not None

    async def website_id_exists(self, session: AsyncSession, website_id: str) -> bool:
        stmt = select(Website.id).where(Website.website_id == website_id).limit(1)
        result = await session.execute(stmt)
        return result.first() is not None

    async def list_by_owner(self, session: AsyncSession, owner_email: str) -> List[Website]:
        """Websites owned by an email, newest first."""
        stmt = (
            select(Website)
            .where(Website.owner_email == owner_email.strip().lower())
            .order_by(Website.created_at.desc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def create(self, session: AsyncSession, **fields) -> Website:
        website = Website(**fields)
        session.add(website)
        await session.flush()
        return website

    async def delete(self, session: AsyncSession, website_pk: str) -> None:
        await session.execute(delete(Website).where(Website.id == website_pk))


# Singleton instance
website_repository = WebsiteRepository()
