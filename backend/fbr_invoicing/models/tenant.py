from __future__ import annotations
from enum import Enum
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict, SecretStr


class FbrEnvironment(str, Enum):
    SANDBOX = "sandbox"
    PRODUCTION = "production"

    @classmethod
    def from_flag(cls, is_production: Optional[bool]) -> "FbrEnvironment":
        return cls.PRODUCTION if is_production else cls.SANDBOX

    @property
    def is_production(self) -> bool:
        return self is FbrEnvironment.PRODUCTION

    # Sandbox endpoints carry the _sb suffix
    @property
    def validate_path(self) -> str:
        return "validateinvoicedata" if self.is_production else "validateinvoicedata_sb"

    @property
    def post_path(self) -> str:
        return "postinvoicedata" if self.is_production else "postinvoicedata_sb"


class SellerInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    ntncnic: Optional[str] = Field("", alias="sellerNTNCNIC")
    business_name: Optional[str] = Field("", alias="sellerBusinessName")
    province: Optional[str] = Field("", alias="sellerProvince")
    address: Optional[str] = Field("", alias="sellerAddress")

    def is_empty(self) -> bool:
        return not (self.ntncnic or self.business_name)


class TenantFbrSettings(BaseModel):
    """FBR credentials stored for one tenant and one environment."""
    model_config = ConfigDict(populate_by_name=True)
    tenant_id: str
    environment: FbrEnvironment = FbrEnvironment.SANDBOX
    fbr_base_url: Optional[str] = None
    fbr_token: Optional[SecretStr] = None
    seller: Optional[SellerInfo] = None
    is_active: bool = True
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def token_value(self) -> Optional[str]:
        return self.fbr_token.get_secret_value() if self.fbr_token else None


class TenantFbrConfig(BaseModel):
    """
    Explicit submission context: which environment to talk to, with which
    credentials and seller defaults. Built once per request and handed to the
    orchestrator and gateway.
    """
    model_config = ConfigDict(populate_by_name=True)
    tenant_id: Optional[str] = None
    environment: FbrEnvironment = FbrEnvironment.SANDBOX
    base_url: Optional[str] = None
    token: Optional[SecretStr] = None
    seller: Optional[SellerInfo] = None

    def token_value(self) -> Optional[str]:
        return self.token.get_secret_value() if self.token else None
