"""
Two-phase FBR submission: local checks, mapping, remote validation, then a
single post.

    RECEIVED -> LOCALLY_VALIDATED -> MAPPED -> REMOTELY_VALIDATED -> POSTED

with exits LOCAL_VALIDATION_FAILED, MAPPING_FAILED, REMOTE_VALIDATION_FAILED,
POST_FAILED and ERROR. Each call to `submit` is one explicit attempt; nothing
here loops or retries the post.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from fbr_invoicing.config.settings import Settings, settings as default_settings
from fbr_invoicing.core.exceptions import (
    GatewayError,
    GatewayUnreachable,
    LocalValidationError,
    MappingError,
    PostFailed,
    ValidationRejected,
)
from fbr_invoicing.models.fbr_invoice import FbrInvoice
from fbr_invoicing.models.order import Order
from fbr_invoicing.models.submission import (
    FbrPostResponse,
    FbrValidationResponse,
    SubmissionOutcome,
    SubmissionResult,
    SubmissionState,
)
from fbr_invoicing.models.tenant import SellerInfo, TenantFbrConfig
from fbr_invoicing.modules.mapping.invoice_mapping import map_order_to_fbr_invoice, sanitize
from fbr_invoicing.modules.mapping.order_validation import validate_order_for_fbr
from fbr_invoicing.services.fbr_gateway import FbrGatewayClient
from fbr_invoicing.utils.metrics import metrics_collector
from fbr_invoicing.utils.observability import ObservabilityLogger

logger = logging.getLogger(__name__)
obs = ObservabilityLogger(__name__)

# Keys a caller may put next to a direct invoice; they are never forwarded to FBR
_OVERRIDE_KEYS = ("fbrSandboxToken", "productionToken", "fbrBaseUrl", "isProductionSubmission")

# Discriminator of an HTTP submission body
KIND_KEY = "kind"
KIND_ORDER = "order"
KIND_INVOICE = "invoice"


@dataclass(frozen=True)
class OrderToMap:
    order: Order

    @property
    def is_production(self) -> bool:
        return self.order.is_production_submission

    def token_for(self, is_production: bool) -> Optional[str]:
        return self.order.token_for(is_production)


@dataclass(frozen=True)
class DirectInvoice:
    invoice: FbrInvoice
    sandbox_token: Optional[str] = None
    production_token: Optional[str] = None
    base_url: Optional[str] = None
    is_production: bool = False

    def token_for(self, is_production: bool) -> Optional[str]:
        return self.production_token if is_production else self.sandbox_token


SubmissionInput = Union[OrderToMap, DirectInvoice]


def resolve_submission_input(body: Any) -> SubmissionInput:
    """
    Decide once, at the boundary, whether a request body is a ready FBR
    invoice or an order that still has to be mapped.

    Dict bodies say so explicitly: ``{"kind": "invoice", "invoice": {...}}``
    carries a ready invoice (override keys sit next to it); ``"kind": "order"``
    or no kind at all means the body is the order itself.
    """
    if isinstance(body, (OrderToMap, DirectInvoice)):
        return body
    if isinstance(body, Order):
        return OrderToMap(order=body)
    if isinstance(body, FbrInvoice):
        return DirectInvoice(invoice=body)
    if not isinstance(body, dict):
        raise TypeError(f"Unsupported submission body: {type(body).__name__}")

    data = dict(body)
    kind = data.pop(KIND_KEY, None) or KIND_ORDER
    if kind == KIND_ORDER:
        return OrderToMap(order=Order.model_validate(data))
    if kind != KIND_INVOICE:
        raise ValueError(f"Unknown submission kind '{kind}', expected '{KIND_ORDER}' or '{KIND_INVOICE}'")

    invoice = data.get("invoice")
    if not isinstance(invoice, dict):
        raise ValueError("A submission of kind 'invoice' must carry an 'invoice' object")
    overrides = {key: data.get(key) for key in _OVERRIDE_KEYS}
    return DirectInvoice(
        invoice=FbrInvoice.model_validate(invoice),
        sandbox_token=overrides["fbrSandboxToken"] or None,
        production_token=overrides["productionToken"] or None,
        base_url=overrides["fbrBaseUrl"] or None,
        is_production=bool(overrides["isProductionSubmission"]),
    )


class SubmissionOrchestrator:
    def __init__(self, gateway: FbrGatewayClient, app_settings: Optional[Settings] = None):
        self.gateway = gateway
        self.settings = app_settings or default_settings

    def _default_seller(self, config: Optional[TenantFbrConfig]) -> Optional[SellerInfo]:
        if config is not None and config.seller is not None and not config.seller.is_empty():
            return config.seller
        seller = SellerInfo(
            ntncnic=self.settings.FBR_SELLER_NTNCNIC,
            business_name=self.settings.FBR_SELLER_BUSINESS_NAME,
            province=self.settings.FBR_SELLER_PROVINCE,
            address=self.settings.FBR_SELLER_ADDRESS,
        )
        return None if seller.is_empty() else seller

    def submit(
        self,
        order_or_invoice: Union[SubmissionInput, Order, FbrInvoice, Dict[str, Any]],
        preview: bool = False,
        config: Optional[TenantFbrConfig] = None,
    ) -> SubmissionResult:
        """
        Run one submission attempt. Never raises: every failure, including an
        unexpected defect, is returned as a SubmissionResult.
        """
        state = SubmissionState.RECEIVED
        invoice: Optional[FbrInvoice] = None
        validation: Optional[FbrValidationResponse] = None
        post: Optional[FbrPostResponse] = None
        environment = config.environment.value if config is not None else "sandbox"

        def finish(outcome: SubmissionOutcome, final_state: SubmissionState, **fields) -> SubmissionResult:
            if invoice is not None and "invoice" not in fields:
                fields["invoice"] = sanitize(invoice, outcome == SubmissionOutcome.PREVIEW)
            fields.setdefault("validation_response", validation)
            fields.setdefault("post_response", post)
            result = SubmissionResult(outcome=outcome, final_state=final_state, **fields)
            if outcome != SubmissionOutcome.PREVIEW:
                metrics_collector.record_submission(outcome.value, environment)
            obs.log_business_event(
                "fbr_submission",
                tenant_id=config.tenant_id if config is not None else "",
                outcome=outcome.value,
                final_state=final_state.value,
                fbr_environment=environment,
                invoice_number=result.invoice_number,
            )
            return result

        try:
            submission = resolve_submission_input(order_or_invoice)
            warnings: List[str] = []

            if isinstance(submission, OrderToMap):
                order = submission.order.with_seller_defaults(self._default_seller(config))

                check = validate_order_for_fbr(order)
                warnings = list(check.warnings)
                if not check.is_valid:
                    error = LocalValidationError(check.errors)
                    logger.warning(f"❌ Order {order.id or '-'} failed local validation: {error.message}")
                    return finish(
                        SubmissionOutcome.VALIDATION_FAILED,
                        SubmissionState.LOCAL_VALIDATION_FAILED,
                        errors=error.errors,
                        warnings=warnings,
                        error_kind=error.kind,
                    )
                state = SubmissionState.LOCALLY_VALIDATED

                try:
                    invoice = map_order_to_fbr_invoice(order)
                except MappingError as e:
                    logger.warning(f"❌ Order {order.id or '-'} could not be mapped: {e.message}")
                    item_errors = {e.item_index + 1: e.reason} if e.item_index is not None else {}
                    return finish(
                        SubmissionOutcome.MAPPING_FAILED,
                        SubmissionState.MAPPING_FAILED,
                        errors=[e.message],
                        warnings=warnings,
                        error_kind=e.kind,
                        item_errors=item_errors,
                    )
                base_url = order.fbr_base_url or None
            else:
                invoice = submission.invoice
                base_url = submission.base_url

            state = SubmissionState.MAPPED
            # Environment is fixed once; override tokens are only taken for that environment
            fbr_env = self.gateway.resolve_environment(True if submission.is_production else None, config)
            environment = fbr_env.value
            token = submission.token_for(fbr_env.is_production)

            if preview:
                logger.info(f"👀 FBR preview generated for scenario {invoice.scenario_id}")
                return finish(SubmissionOutcome.PREVIEW, state, warnings=warnings)

            if environment == "production":
                logger.info("🚨 Production FBR submission")

            call = dict(
                token=token,
                tenant_id=config.tenant_id if config is not None else None,
                base_url=base_url,
                is_production=fbr_env.is_production,
                config=config,
            )

            # Remote validation
            try:
                validation = self.gateway.validate_invoice(invoice, **call)
            except GatewayError as e:
                return finish(
                    SubmissionOutcome.FBR_VALIDATION_FAILED,
                    SubmissionState.REMOTE_VALIDATION_FAILED,
                    errors=[e.message],
                    warnings=warnings,
                    error_kind=e.kind,
                )
            if not validation.is_valid:
                rejected = ValidationRejected(
                    validation.error or f"FBR validation status: {validation.status or 'malformed response'}",
                    response=validation,
                )
                logger.warning(f"❌ FBR validation failed: {rejected.message}")
                return finish(
                    SubmissionOutcome.FBR_VALIDATION_FAILED,
                    SubmissionState.REMOTE_VALIDATION_FAILED,
                    errors=[rejected.message],
                    warnings=warnings,
                    error_kind=rejected.kind,
                    item_errors=validation.item_errors,
                )
            state = SubmissionState.REMOTELY_VALIDATED

            # Post, exactly once
            try:
                post = self.gateway.post_invoice(invoice, **call)
            except GatewayUnreachable as e:
                failure = PostFailed(f"FBR post outcome unknown: {e.message}", outcome_unknown=True)
                logger.error(f"❌ {failure.message}")
                return finish(
                    SubmissionOutcome.FBR_POST_FAILED,
                    SubmissionState.POST_FAILED,
                    errors=[failure.message],
                    warnings=warnings,
                    error_kind=e.kind,
                    outcome_unknown=True,
                )
            except GatewayError as e:
                return finish(
                    SubmissionOutcome.FBR_POST_FAILED,
                    SubmissionState.POST_FAILED,
                    errors=[e.message],
                    warnings=warnings,
                    error_kind=e.kind,
                )
            if not post.success:
                failure = PostFailed(
                    f"FBR post failed: {post.error or post.status or 'no invoice number returned'}",
                    response=post,
                )
                logger.error(f"❌ {failure.message}")
                return finish(
                    SubmissionOutcome.FBR_POST_FAILED,
                    SubmissionState.POST_FAILED,
                    errors=[failure.message],
                    warnings=warnings,
                    error_kind=failure.kind,
                    item_errors=post.item_errors,
                )

            state = SubmissionState.POSTED
            return finish(
                SubmissionOutcome.SUCCESS,
                state,
                warnings=warnings,
                invoice_number=post.invoice_number,
            )

        except Exception as e:
            obs.log_error(type(e).__name__, str(e), exc_info=True, state=state.value)
            return finish(
                SubmissionOutcome.ERROR,
                SubmissionState.ERROR,
                errors=[str(e)],
                error_kind=type(e).__name__,
            )
