"""
FBR endpoints: submission (validate + post), diagnostics, tenant settings
and the scenario catalogue.
"""
from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError
from typing import Any, Dict, Optional
import logging

from fbr_invoicing.api.deps import (
    get_gateway,
    get_orchestrator,
    get_tenant_config,
    get_tenant_id,
    get_tenant_repository,
)
from fbr_invoicing.core.exceptions import MappingError
from fbr_invoicing.models.tenant import FbrEnvironment, SellerInfo, TenantFbrConfig, TenantFbrSettings
from fbr_invoicing.modules.mapping.invoice_mapping import create_test_fbr_invoice, sanitize
from fbr_invoicing.modules.mapping.scenario_rules import list_rules
from fbr_invoicing.repositories.tenant_settings_repository import TenantSettingsRepository
from fbr_invoicing.services.fbr_gateway import FbrGatewayClient
from fbr_invoicing.services.submission_service import SubmissionOrchestrator, resolve_submission_input

router = APIRouter()
logger = logging.getLogger(__name__)


class TenantSettingsPayload(BaseModel):
    base_url: Optional[str] = Field(None, alias="baseUrl")
    token: Optional[str] = None
    is_production: bool = Field(False, alias="isProduction")
    seller: Optional[SellerInfo] = None


def _no_tenant() -> JSONResponse:
    return JSONResponse({"error": "No tenant context found"}, status_code=400)


@router.post("/submit")
def submit_invoice(
    body: Dict[str, Any] = Body(...),
    preview: bool = Query(False),
    config: Optional[TenantFbrConfig] = Depends(get_tenant_config),
    orchestrator: SubmissionOrchestrator = Depends(get_orchestrator),
):
    """
    Validate and post an invoice with FBR. The body is an order to be mapped,
    or `{"kind": "invoice", "invoice": {...}}` for a ready FBR invoice.
    `?preview=true` only returns the mapped invoice with credentials redacted.
    Send `X-FBR-Environment: production` to submit against production.
    """
    try:
        submission = resolve_submission_input(body)
    except ValidationError as e:
        errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        return JSONResponse(
            {"step": "validation", "ok": False, "error": "Invalid request body", "errors": errors},
            status_code=400,
        )
    except ValueError as e:
        return JSONResponse(
            {"step": "validation", "ok": False, "error": "Invalid request body", "errors": [str(e)]},
            status_code=400,
        )

    result = orchestrator.submit(submission, preview=preview, config=config)
    payload = result.to_dict()
    if result.step == "preview":
        payload["message"] = "FBR invoice preview generated successfully"
    return JSONResponse(payload, status_code=result.http_status)


@router.get("/submit")
def submit_diagnostics(
    test: Optional[str] = Query(None),
    scenario: str = Query("SN026"),
    production: bool = Query(False),
    tenant_id: Optional[str] = Depends(get_tenant_id),
    config: Optional[TenantFbrConfig] = Depends(get_tenant_config),
    gateway: FbrGatewayClient = Depends(get_gateway),
):
    is_production = True if production else None

    if test == "config":
        check = gateway.validate_configuration(tenant_id=tenant_id, is_production=is_production, config=config)
        return {"configured": check["is_valid"], "environment": check["environment"], "errors": check["errors"]}

    if test == "connection":
        return gateway.check_connection(tenant_id=tenant_id, is_production=is_production, config=config)

    if test == "sample":
        seller = config.seller if config is not None else None
        try:
            invoice = create_test_fbr_invoice(scenario.strip().upper(), seller)
        except MappingError as e:
            return JSONResponse({"scenario": scenario, **e.to_dict()}, status_code=400)
        return {"scenario": scenario, "invoice": sanitize(invoice, True)}

    return {
        "message": "FBR Submit API",
        "endpoints": {
            "POST /fbr/submit": "Submit invoice to FBR (validate + post)",
            "POST /fbr/submit?preview=true": "Preview the mapped FBR invoice",
            "GET /fbr/submit?test=config": "Check FBR configuration",
            "GET /fbr/submit?test=connection": "Check FBR connectivity",
            "GET /fbr/submit?test=sample&scenario=SN026": "Generate a sample invoice",
        },
    }


@router.get("/tenant-settings")
def get_tenant_settings(
    tenant_id: Optional[str] = Depends(get_tenant_id),
    repo: TenantSettingsRepository = Depends(get_tenant_repository),
):
    if not tenant_id:
        return _no_tenant()

    stored = repo.list_tenant_fbr_settings(tenant_id)
    fbr_settings = [
        {
            "environment": s.environment.value,
            "fbrBaseUrl": s.fbr_base_url,
            "hasToken": bool(s.token_value()),
            "seller": s.seller.model_dump(by_alias=True) if s.seller else None,
            "updatedAt": s.updated_at.isoformat(),
        }
        for s in stored
    ]
    return {
        "tenantId": tenant_id,
        "fbrSettings": fbr_settings,
        "message": f"Found {len(fbr_settings)} FBR settings for tenant",
    }


@router.post("/tenant-settings")
def save_tenant_settings(
    payload: TenantSettingsPayload,
    tenant_id: Optional[str] = Depends(get_tenant_id),
    repo: TenantSettingsRepository = Depends(get_tenant_repository),
):
    if not tenant_id:
        return _no_tenant()
    if not payload.base_url or not payload.token:
        return JSONResponse({"error": "baseUrl and token are required"}, status_code=400)

    environment = FbrEnvironment.from_flag(payload.is_production)
    saved = repo.save_tenant_fbr_settings(TenantFbrSettings(
        tenant_id=tenant_id,
        environment=environment,
        fbr_base_url=payload.base_url,
        fbr_token=payload.token,
        seller=payload.seller,
    ))
    logger.info(f"🔐 FBR {environment.value} settings updated for tenant {tenant_id}")
    return {
        "success": True,
        "message": f"FBR {environment.value} settings updated for tenant {tenant_id}",
        "environment": saved.environment.value,
        "fbrBaseUrl": saved.fbr_base_url,
    }


@router.get("/scenarios")
def get_scenarios():
    return [
        {
            "scenarioId": rule.scenario_id,
            "description": rule.description,
            "saleType": rule.sale_type,
            "rate": rule.default_rate_label,
            "taxTreatment": rule.tax_treatment.value,
            "allowedBuyerTypes": sorted(t.value for t in rule.allowed_buyer_types),
            "requiresFixedNotifiedValue": rule.requires_fixed_notified_value,
            "requiresFedPayable": rule.requires_fed_payable,
            "requiresSro": rule.requires_sro,
            "tooltip": rule.tooltip,
        }
        for rule in list_rules()
    ]
