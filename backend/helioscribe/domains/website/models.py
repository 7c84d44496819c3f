"""Website registry models."""

from datetime import datetime
from sqlalchemy import String, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column
from helioscribe.common.base import Base, UUIDMixin, get_table_args, utcnow

EMPLOYEE_COUNT_OPTIONS = (
    "1-10",
    "11-50",
    "51-100",
    "101-250",
    "251-500",
    "501-1000",
    "1001-5000",
    "5001-10000",
    "10000+",
)


class Website(Base, UUIDMixin):
    """A registered website, owned by a user's email, with its vector collection id."""

    __tablename__ = "websites"
    __table_args__ = get_table_args(
        Index("idx_websites_domain", "domain", unique=True),
        Index("idx_websites_website_id", "website_id", unique=True),
        Index("idx_websites_owner_email", "owner_email"),
        schema="website",
    )

    domain: Mapped[str] = mapped_column(String(253), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    employees_count: Mapped[str] = mapped_column(String(20), nullable=False)
    website_id: Mapped[str] = mapped_column(String(10), nullable=False)
    owner_email: Mapped[str] = mapped_column(String(255), nullable=False)
    # Python-side default keeps microseconds for newest-first ordering
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Website {self.website_id} domain={self.domain}>"
