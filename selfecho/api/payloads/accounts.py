"""
Pydantic models for mail account endpoints.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class TLSMode(str, Enum):
    SSL = "ssl"
    STARTTLS = "starttls"
    PLAIN = "plain"


class CreateAccountRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    host: str
    port: int = 0
    username: str
    password: str
    tls_mode: TLSMode = Field(TLSMode.SSL, alias="tlsMode")


class CreateAccountResponse(BaseModel):
    id: int


class UpdateCredentialsRequest(BaseModel):
    password: str


class AccountListItem(BaseModel):
    """Account as listed to administrators; never carries the secret."""

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: int
    host: str
    port: int
    username: str
    use_ssl: bool = Field(alias="useSsl")
    use_starttls: bool = Field(alias="useStartTls")
    last_uid: int = Field(alias="lastUid")
    last_uid_validity: int = Field(alias="lastUidValidity")
    created_at: datetime | None = Field(None, alias="createdAt")
