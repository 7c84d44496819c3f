"""
Website Service - 网站注册 (数据库记录 + 向量集合)

Registration is a two-phase action: the row is reserved (inserted and
committed), then the external collection is provisioned; if provisioning
fails the row is deleted again, so no committed Website outlives a failed
collection.
"""

import logging
import secrets
import string
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from helioscribe.common.exceptions import ConflictError, ExternalServiceError, InternalError
from helioscribe.domains.website.models import Website
from helioscribe.domains.website.repository import WebsiteRepository, website_repository
from helioscribe.domains.website.schemas import WebsiteCreateRequest
from helioscribe.domains.website.vector_store import VectorIndexProvisioner

logger = logging.getLogger(__name__)

WEBSITE_ID_ALPHABET = string.ascii_uppercase + string.digits
WEBSITE_ID_LENGTH = 10
MAX_ID_ATTEMPTS = 10

ID_EXHAUSTED = "Unable to generate unique website ID. Please try again."
ID_COLLISION = (
    "We encountered an issue while generating a unique identifier for your website. "
    "Please try again in a moment."
)
PROVISIONING_FAILED = (
    "We encountered an issue while setting up your website. Please try again in a few "
    "moments. If the problem persists, contact support."
)


def duplicate_domain_error(domain: str) -> ConflictError:
    return ConflictError(
        f'The domain "{domain}" has already been added to our system. Each domain can only '
        f"be added once. If this is your website, please contact support for assistance."
    )


def generate_website_id() -> str:
    return "".join(secrets.choice(WEBSITE_ID_ALPHABET) for _ in range(WEBSITE_ID_LENGTH))


async def allocate_website_id(
    session: AsyncSession, repository: Optional[WebsiteRepository] = None
) -> str:
    """Draw ids until one is unused, up to MAX_ID_ATTEMPTS."""
    repository = repository or website_repository
    for _ in range(MAX_ID_ATTEMPTS):
        candidate = generate_website_id()
        if not await repository.website_id_exists(session, candidate):
            return candidate
    raise InternalError(ID_EXHAUSTED)


class WebsiteRegistration:
    """reserve -> provision -> (keep | compensate)."""

    def __init__(
        self,
        session: AsyncSession,
        provisioner: VectorIndexProvisioner,
        repository: Optional[WebsiteRepository] = None,
    ):
        self.session = session
        self.provisioner = provisioner
        self.repository = repository or website_repository

    async def reserve(self, owner_email: str, data: WebsiteCreateRequest) -> Website:
        if await self.repository.domain_exists(self.session, data.domain):
            raise duplicate_domain_error(data.domain)

        website_id = await allocate_website_id(self.session, self.repository)
        try:
            website = await self.repository.create(
                self.session,
                domain=data.domain,
                description=data.description,
                employees_count=data.employees_count,
                website_id=website_id,
                owner_email=owner_email.strip().lower(),
            )
            await self.session.commit()
        except IntegrityError:
            # Lost a race on one of the unique indexes; find out which
            await self.session.rollback()
            if await self.repository.domain_exists(self.session, data.domain):
                raise duplicate_domain_error(data.domain)
            raise InternalError(ID_COLLISION)
        return website

    async def provision(self, website: Website) -> None:
        await self.provisioner.create_collection(website.website_id)

    async def compensate(self, website: Website) -> None:
        await self.repository.delete(self.session, website.id)
        await self.session.commit()
        logger.info(f"Rolled back website {website.website_id} ({website.domain})")

    async def run(self, owner_email: str, data: WebsiteCreateRequest) -> Website:
        website = await self.reserve(owner_email, data)
        try:
            await self.provision(website)
        except Exception as e:
            logger.error(f"Vector collection creation failed for {website.website_id}: {e}")
            await self.compensate(website)
            raise ExternalServiceError(PROVISIONING_FAILED)
        logger.info(f"Website registered: {website.domain} -> {website.website_id}")
        return website


async def list_websites(session: AsyncSession, owner_email: str) -> List[Website]:
    return await website_repository.list_by_owner(session, owner_email)
