from __future__ import annotations

from typing import Any, List, Optional

import pytest

from fbr_samples import INVALID_FBR_RESPONSE, POSTED_FBR_RESPONSE, VALID_FBR_RESPONSE, FakeResponse, FakeSession
from fbr_invoicing.config.settings import Settings
from fbr_invoicing.core.exceptions import GatewayAuthError, GatewayUnreachable
from fbr_invoicing.models.fbr_invoice import FbrInvoice
from fbr_invoicing.models.order import Order
from fbr_invoicing.models.submission import (
    FbrPostResponse,
    FbrValidationResponse,
    SubmissionOutcome,
    SubmissionState,
)
from fbr_invoicing.models.tenant import FbrEnvironment, SellerInfo, TenantFbrConfig
from fbr_invoicing.services.fbr_gateway import FbrGatewayClient
from fbr_invoicing.services.submission_service import (
    DirectInvoice,
    OrderToMap,
    SubmissionOrchestrator,
    resolve_submission_input,
)


class FakeGateway:
    """Counts calls; each answer is a body dict or an exception to raise."""

    def __init__(self, validate: Any = VALID_FBR_RESPONSE, post: Any = POSTED_FBR_RESPONSE):
        self.validate_answer = validate
        self.post_answer = post
        self.validate_calls: List[dict] = []
        self.post_calls: List[dict] = []

    def resolve_environment(self, is_production=None, config=None):
        if is_production is not None:
            return FbrEnvironment.from_flag(is_production)
        return config.environment if config is not None else FbrEnvironment.SANDBOX

    def validate_invoice(self, invoice, **kwargs):
        self.validate_calls.append({"invoice": invoice, **kwargs})
        if isinstance(self.validate_answer, Exception):
            raise self.validate_answer
        return FbrValidationResponse.from_body(self.validate_answer, 200)

    def post_invoice(self, invoice, **kwargs):
        self.post_calls.append({"invoice": invoice, **kwargs})
        if isinstance(self.post_answer, Exception):
            raise self.post_answer
        return FbrPostResponse.from_body(self.post_answer, 200)


def _orchestrator(gateway: Optional[FakeGateway] = None, **settings_overrides):
    gateway = gateway or FakeGateway()
    values = {"FBR_SELLER_NTNCNIC": "", "FBR_SELLER_BUSINESS_NAME": ""}
    values.update(settings_overrides)
    return SubmissionOrchestrator(gateway, app_settings=Settings(**values)), gateway


def test_happy_path_validates_then_posts_once(order_payload):
    orchestrator, gateway = _orchestrator()
    result = orchestrator.submit(order_payload())

    assert result.outcome == SubmissionOutcome.SUCCESS
    assert result.final_state == SubmissionState.POSTED
    assert result.invoice_number == "7000007DI1747119701593"
    assert len(gateway.validate_calls) == 1
    assert len(gateway.post_calls) == 1
    assert result.validation_response.raw == VALID_FBR_RESPONSE
    assert result.post_response.raw == POSTED_FBR_RESPONSE
    assert result.http_status == 200


def test_sn001_unregistered_buyer_never_reaches_gateway(order_payload):
    orchestrator, gateway = _orchestrator()
    result = orchestrator.submit(order_payload(scenarioId="SN001", buyerRegistrationType="Unregistered"))

    assert result.outcome == SubmissionOutcome.VALIDATION_FAILED
    assert result.final_state == SubmissionState.LOCAL_VALIDATION_FAILED
    assert result.error_kind == "LocalValidationError"
    assert gateway.validate_calls == []
    assert gateway.post_calls == []
    assert result.http_status == 400


def test_mapping_failure_stops_before_gateway(order_payload):
    body = order_payload(scenarioId="SN008")
    body["items"].append({"productName": "Second", "hsCode": "0101.2100", "quantity": 1,
                          "priceExcludingTax": 10, "taxPercentage": 18})
    body["items"][0]["fixedNotifiedValueOrRetailPrice"] = 100
    orchestrator, gateway = _orchestrator()
    result = orchestrator.submit(body)

    assert result.outcome == SubmissionOutcome.MAPPING_FAILED
    assert result.final_state == SubmissionState.MAPPING_FAILED
    assert result.error_kind == "MappingError"
    assert 2 in result.item_errors
    assert gateway.validate_calls == []


def test_preview_has_no_side_effects_and_redacts_tokens(order_payload):
    orchestrator, gateway = _orchestrator()
    result = orchestrator.submit(order_payload(fbrSandboxToken="secret-token"), preview=True)

    assert result.outcome == SubmissionOutcome.PREVIEW
    assert result.ok is True
    assert gateway.validate_calls == []
    assert gateway.post_calls == []
    assert "secret-token" not in str(result.to_dict())
    assert result.invoice["items"][0]["totalValues"] == "117.00"


def test_remote_rejection_never_posts(order_payload):
    orchestrator, gateway = _orchestrator(FakeGateway(validate=INVALID_FBR_RESPONSE))
    result = orchestrator.submit(order_payload())

    assert result.outcome == SubmissionOutcome.FBR_VALIDATION_FAILED
    assert result.final_state == SubmissionState.REMOTE_VALIDATION_FAILED
    assert result.error_kind == "ValidationRejected"
    assert result.item_errors == {1: "[0052] Provide proper HS Code with invoice no. null"}
    assert result.validation_response.raw == INVALID_FBR_RESPONSE
    assert gateway.post_calls == []


@pytest.mark.parametrize("error", [
    GatewayUnreachable("connection refused"),
    GatewayAuthError("bad token"),
])
def test_gateway_errors_during_validation(order_payload, error):
    orchestrator, gateway = _orchestrator(FakeGateway(validate=error))
    result = orchestrator.submit(order_payload())

    assert result.outcome == SubmissionOutcome.FBR_VALIDATION_FAILED
    assert result.error_kind == type(error).__name__
    assert gateway.post_calls == []


def test_malformed_validation_response_never_posts(order_payload):
    orchestrator, gateway = _orchestrator(FakeGateway(validate="<html>oops</html>"))
    result = orchestrator.submit(order_payload())
    assert result.outcome == SubmissionOutcome.FBR_VALIDATION_FAILED
    assert gateway.post_calls == []


def test_post_timeout_reports_unknown_outcome(order_payload):
    orchestrator, gateway = _orchestrator(FakeGateway(post=GatewayUnreachable("timeout")))
    result = orchestrator.submit(order_payload())

    assert result.outcome == SubmissionOutcome.FBR_POST_FAILED
    assert result.final_state == SubmissionState.POST_FAILED
    assert result.error_kind == "GatewayUnreachable"
    assert result.outcome_unknown is True
    assert len(gateway.post_calls) == 1
    assert result.to_dict()["outcomeUnknown"] is True


def test_post_rejection_keeps_both_responses(order_payload):
    rejected = {"validationResponse": {"statusCode": "01", "status": "Invalid", "error": "Duplicate invoice"}}
    orchestrator, gateway = _orchestrator(FakeGateway(post=rejected))
    result = orchestrator.submit(order_payload())

    assert result.outcome == SubmissionOutcome.FBR_POST_FAILED
    assert result.error_kind == "PostFailed"
    assert result.outcome_unknown is False
    body = result.to_dict()
    assert body["response"] == rejected
    assert body["validation"] == VALID_FBR_RESPONSE


def test_unexpected_error_is_returned_not_raised(order_payload):
    orchestrator, gateway = _orchestrator(FakeGateway(validate=RuntimeError("boom")))
    result = orchestrator.submit(order_payload())

    assert result.outcome == SubmissionOutcome.ERROR
    assert result.final_state == SubmissionState.ERROR
    assert result.error_kind == "RuntimeError"
    assert result.invoice is not None
    assert result.http_status == 500


def test_direct_invoice_skips_local_steps():
    invoice = FbrInvoice.model_validate({
        "invoiceType": "Sale Invoice", "scenarioId": "SN001", "buyerRegistrationType": "Unregistered",
        "sellerNTNCNIC": "8885801", "items": [{"hsCode": "0101.2100", "rate": "18%"}],
    })
    orchestrator, gateway = _orchestrator()
    result = orchestrator.submit(DirectInvoice(invoice=invoice, sandbox_token="direct-token"))

    assert result.outcome == SubmissionOutcome.SUCCESS
    assert gateway.validate_calls[0]["token"] == "direct-token"


def test_order_token_override_is_forwarded_for_its_environment(order_payload):
    orchestrator, gateway = _orchestrator()
    orchestrator.submit(order_payload(fbrSandboxToken="sb", productionToken="prod", isProductionSubmission=True))
    call = gateway.validate_calls[0]
    assert call["token"] == "prod"
    assert call["is_production"] is True


def test_tenant_seller_defaults_fill_missing_seller(order_payload):
    config = TenantFbrConfig(tenant_id="t1", seller=SellerInfo(ntncnic="1111111", business_name="Tenant Co"))
    orchestrator, gateway = _orchestrator()
    result = orchestrator.submit(order_payload(sellerNTNCNIC="", sellerBusinessName=""), config=config)

    assert result.outcome == SubmissionOutcome.SUCCESS
    assert gateway.validate_calls[0]["invoice"].seller_ntncnic == "1111111"
    assert gateway.validate_calls[0]["tenant_id"] == "t1"


def test_each_submit_is_an_independent_attempt(order_payload):
    orchestrator, gateway = _orchestrator(FakeGateway(post=GatewayUnreachable("timeout")))
    first = orchestrator.submit(order_payload())
    second = orchestrator.submit(order_payload())
    assert first is not second
    assert len(gateway.post_calls) == 2


DIRECT_INVOICE = {
    "invoiceType": "Sale Invoice", "scenarioId": "SN026", "sellerNTNCNIC": "8885801",
    "buyerRegistrationType": "Unregistered", "items": [{"hsCode": "0101.2100", "rate": "18%"}],
}


def test_resolve_submission_input_uses_explicit_kind(order_payload):
    resolved = resolve_submission_input({
        "kind": "invoice", "invoice": DIRECT_INVOICE,
        "fbrSandboxToken": "tok", "productionToken": "prod", "fbrBaseUrl": "https://custom.example/di",
    })
    assert isinstance(resolved, DirectInvoice)
    assert resolved.token_for(False) == "tok"
    assert resolved.token_for(True) == "prod"
    assert resolved.base_url == "https://custom.example/di"
    assert "fbrSandboxToken" not in resolved.invoice.to_payload()

    assert isinstance(resolve_submission_input(order_payload()), OrderToMap)
    assert isinstance(resolve_submission_input(order_payload(kind="order")), OrderToMap)
    assert isinstance(resolve_submission_input(Order.model_validate(order_payload())), OrderToMap)


def test_order_with_invoice_fields_is_still_mapped(order_payload):
    body = order_payload(**DIRECT_INVOICE)
    assert isinstance(resolve_submission_input(body), OrderToMap)


@pytest.mark.parametrize("body", [
    {"kind": "receipt"},
    {"kind": "invoice"},
    {"kind": "invoice", "invoice": "not an object"},
])
def test_resolve_submission_input_rejects_bad_kinds(body):
    with pytest.raises(ValueError):
        resolve_submission_input(body)


def test_sandbox_order_token_never_reaches_production(order_payload):
    session = FakeSession([FakeResponse(200, VALID_FBR_RESPONSE), FakeResponse(200, POSTED_FBR_RESPONSE)])
    gateway = FbrGatewayClient(
        app_settings=Settings(FBR_SANDBOX_TOKEN="", FBR_PRODUCTION_TOKEN=""),
        session=session,
        retry_min_wait=0,
        retry_max_wait=0,
    )
    orchestrator = SubmissionOrchestrator(gateway, app_settings=Settings())
    config = TenantFbrConfig(tenant_id="t1", environment=FbrEnvironment.PRODUCTION)

    result = orchestrator.submit(order_payload(fbrSandboxToken="SANDBOX-SECRET"), config=config)

    assert result.outcome == SubmissionOutcome.FBR_VALIDATION_FAILED
    assert result.error_kind == "GatewayConfigurationError"
    assert session.calls == []


def test_production_config_uses_order_production_token(order_payload):
    orchestrator, gateway = _orchestrator()
    config = TenantFbrConfig(tenant_id="t1", environment=FbrEnvironment.PRODUCTION)
    orchestrator.submit(order_payload(fbrSandboxToken="sb", productionToken="prod"), config=config)

    call = gateway.validate_calls[0]
    assert call["token"] == "prod"
    assert call["is_production"] is True


def test_direct_invoice_token_follows_resolved_environment():
    invoice = FbrInvoice.model_validate(DIRECT_INVOICE)
    orchestrator, gateway = _orchestrator()
    config = TenantFbrConfig(tenant_id="t1", environment=FbrEnvironment.PRODUCTION)
    orchestrator.submit(DirectInvoice(invoice=invoice, sandbox_token="sb"), config=config)

    call = gateway.validate_calls[0]
    assert call["token"] is None
    assert call["is_production"] is True
