"""Website domain Pydantic schemas."""

import re
from datetime import datetime

from pydantic import Field, field_validator

from helioscribe.common.schemas import CamelModel
from helioscribe.domains.website.models import EMPLOYEE_COUNT_OPTIONS

DOMAIN_PATTERN = re.compile(r"^([a-z0-9]([a-z0-9\-]*[a-z0-9])?\.)+[a-z]{2,}$", re.IGNORECASE)


class WebsiteCreateRequest(CamelModel):
    domain: str
    description: str
    employees_count: str

    @field_validator("domain")
    @classmethod
    def _valid_domain(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("Please enter your website domain name to continue.")
        if not 3 <= len(value) <= 253:
            raise ValueError("Domain name must be between 3 and 253 characters in length.")
        if not DOMAIN_PATTERN.match(value):
            raise ValueError(
                "The domain format is invalid. Please enter a valid domain like example.com "
                "or subdomain.example.com (without http:// or https://)."
            )
        return value

    @field_validator("description")
    @classmethod
    def _valid_description(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError(
                "Please provide a description of your website to help us understand its purpose."
            )
        if not 10 <= len(value) <= 500:
            raise ValueError(
                "Description must be between 10 and 500 characters. "
                "Please provide a detailed description of your website."
            )
        return value

    @field_validator("employees_count")
    @classmethod
    def _valid_employees_count(cls, value: str) -> str:
        if value not in EMPLOYEE_COUNT_OPTIONS:
            raise ValueError("Please select a valid employee count range from the dropdown menu.")
        return value


class WebsiteResponse(CamelModel):
    id: str
    domain: str
    description: str
    employees_count: str
    website_id: str
    website_owner: str = Field(validation_alias="owner_email", serialization_alias="websiteOwner")
    created_at: datetime
