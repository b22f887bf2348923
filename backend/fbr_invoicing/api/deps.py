from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException

from fbr_invoicing.models.tenant import FbrEnvironment, TenantFbrConfig
from fbr_invoicing.repositories.tenant_settings_repository import (
    MongoTenantSettingsRepository,
    TenantSettingsRepository,
)
from fbr_invoicing.services.fbr_gateway import FbrGatewayClient
from fbr_invoicing.services.submission_service import SubmissionOrchestrator
from fbr_invoicing.utils.observability import tenant_id_var


@lru_cache()
def get_tenant_repository() -> TenantSettingsRepository:
    return MongoTenantSettingsRepository()


def get_gateway(repo: TenantSettingsRepository = Depends(get_tenant_repository)) -> FbrGatewayClient:
    return FbrGatewayClient(tenant_repository=repo)


def get_orchestrator(gateway: FbrGatewayClient = Depends(get_gateway)) -> SubmissionOrchestrator:
    return SubmissionOrchestrator(gateway)


async def get_tenant_id(x_tenant_id: Optional[str] = Header(None)) -> Optional[str]:
    tenant_id = (x_tenant_id or "").strip() or None
    if tenant_id:
        tenant_id_var.set(tenant_id)
    return tenant_id


def get_fbr_environment(x_fbr_environment: Optional[str] = Header(None)) -> Optional[FbrEnvironment]:
    value = (x_fbr_environment or "").strip().lower()
    if not value:
        return None
    try:
        return FbrEnvironment(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="X-FBR-Environment must be 'sandbox' or 'production'")


def get_tenant_config(
    tenant_id: Optional[str] = Depends(get_tenant_id),
    environment: Optional[FbrEnvironment] = Depends(get_fbr_environment),
    repo: TenantSettingsRepository = Depends(get_tenant_repository),
) -> Optional[TenantFbrConfig]:
    """
    Submission context for the calling tenant and the environment requested in
    the X-FBR-Environment header (sandbox when absent). Credentials stay in
    the repository and are looked up per environment by the gateway; only the
    seller defaults are carried here.
    """
    if not tenant_id and environment is None:
        return None
    seller = None
    if tenant_id:
        for stored in repo.list_tenant_fbr_settings(tenant_id):
            if stored.seller is not None and not stored.seller.is_empty():
                seller = stored.seller
                break
    return TenantFbrConfig(
        tenant_id=tenant_id,
        environment=environment or FbrEnvironment.SANDBOX,
        seller=seller,
    )
