"""Pydantic schemas for Organization (tenant) endpoints."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class OrganizationResponse(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    is_system_admin: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class OrganizationCreateRequest(BaseModel):
    """Request body for POST /organizations. The slug is derived from the name."""
    name: str = Field(min_length=1, max_length=255)
