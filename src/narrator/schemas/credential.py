"""Credential schemas."""

from typing import Literal, Optional

from pydantic import BaseModel, Field


class CredentialStatus(BaseModel):
    """Whether a key is configured, and where it came from."""

    configured: bool
    source: Literal["stored", "environment", "missing"]
    hint: Optional[str] = Field(
        default=None, description="Last characters of the active key"
    )


class CredentialUpdate(BaseModel):
    api_key: str = Field(..., min_length=1)


__all__ = ["CredentialStatus", "CredentialUpdate"]
