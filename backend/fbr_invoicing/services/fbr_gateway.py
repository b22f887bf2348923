import logging
import time
from typing import Any, Dict, Optional, Tuple, Union

import requests

from fbr_invoicing.config.settings import Settings, settings as default_settings
from fbr_invoicing.config.timeouts import (
    FBR_HEALTHCHECK_TIMEOUT,
    FBR_VALIDATE_RETRY_MAX_WAIT,
    FBR_VALIDATE_RETRY_MIN_WAIT,
    post_timeout,
    validate_timeout,
)
from fbr_invoicing.core.exceptions import (
    GatewayAuthError,
    GatewayConfigurationError,
    GatewayUnreachable,
)
from fbr_invoicing.core.retry import fbr_validate_retry
from fbr_invoicing.models.fbr_invoice import FbrInvoice
from fbr_invoicing.models.submission import FbrPostResponse, FbrValidationResponse
from fbr_invoicing.models.tenant import FbrEnvironment, TenantFbrConfig
from fbr_invoicing.repositories.tenant_settings_repository import TenantSettingsRepository
from fbr_invoicing.utils.metrics import metrics_collector

logger = logging.getLogger(__name__)

InvoicePayload = Union[FbrInvoice, Dict[str, Any]]


class FbrGatewayClient:
    """
    Blocking client for the FBR Digital Invoicing validate/post endpoints.

    Credentials are resolved on every call (explicit override, then tenant
    settings for the same environment, then process settings) and are never
    kept on the instance.
    """

    def __init__(
        self,
        app_settings: Optional[Settings] = None,
        tenant_repository: Optional[TenantSettingsRepository] = None,
        session: Optional[requests.Session] = None,
        validate_max_attempts: Optional[int] = None,
        retry_min_wait: float = FBR_VALIDATE_RETRY_MIN_WAIT,
        retry_max_wait: float = FBR_VALIDATE_RETRY_MAX_WAIT,
    ):
        self.settings = app_settings or default_settings
        self.tenant_repository = tenant_repository
        self.session = session or requests.Session()
        self.validate_max_attempts = (
            validate_max_attempts if validate_max_attempts is not None
            else self.settings.FBR_VALIDATE_MAX_ATTEMPTS
        )
        self.retry_min_wait = retry_min_wait
        self.retry_max_wait = retry_max_wait

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _default_base_url(self, environment: FbrEnvironment) -> str:
        if environment.is_production:
            return self.settings.FBR_PRODUCTION_BASE_URL
        return self.settings.FBR_SANDBOX_BASE_URL

    def _default_token(self, environment: FbrEnvironment) -> str:
        if environment.is_production:
            return self.settings.FBR_PRODUCTION_TOKEN
        return self.settings.FBR_SANDBOX_TOKEN

    def resolve_environment(
        self, is_production: Optional[bool] = None, config: Optional[TenantFbrConfig] = None
    ) -> FbrEnvironment:
        if is_production is not None:
            return FbrEnvironment.from_flag(is_production)
        if config is not None:
            return config.environment
        return FbrEnvironment.SANDBOX

    def _resolve(
        self,
        token: Optional[str],
        tenant_id: Optional[str],
        base_url: Optional[str],
        is_production: Optional[bool],
        config: Optional[TenantFbrConfig],
    ) -> Tuple[FbrEnvironment, str, str]:
        environment = self.resolve_environment(is_production, config)
        same_env_config = config if config is not None and config.environment == environment else None
        tenant_id = tenant_id or (config.tenant_id if config is not None else None)

        stored = None
        if self.tenant_repository is not None and tenant_id:
            stored = self.tenant_repository.get_tenant_fbr_settings(tenant_id, environment)

        resolved_token = (
            token
            or (same_env_config.token_value() if same_env_config else None)
            or (stored.token_value() if stored else None)
            or self._default_token(environment)
        )
        resolved_url = (
            base_url
            or (same_env_config.base_url if same_env_config else None)
            or (stored.fbr_base_url if stored else None)
            or self._default_base_url(environment)
        )

        if not resolved_token:
            raise GatewayConfigurationError(
                f"No FBR {environment.value} token configured",
                details={"environment": environment.value, "tenant_id": tenant_id},
            )
        if not resolved_url:
            raise GatewayConfigurationError(
                f"No FBR {environment.value} base URL configured",
                details={"environment": environment.value, "tenant_id": tenant_id},
            )
        return environment, resolved_url.rstrip("/"), resolved_token

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _send(
        self,
        operation: str,
        environment: FbrEnvironment,
        url: str,
        payload: Dict[str, Any],
        token: str,
        timeout: tuple,
    ) -> Tuple[int, Any]:
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        started = time.monotonic()
        result = "error"
        try:
            logger.info(f"📤 FBR {operation} ({environment.value}) -> {url}")
            response = self.session.post(url, json=payload, headers=headers, timeout=timeout)
            result = str(response.status_code)
        except requests.exceptions.Timeout as e:
            result = "timeout"
            logger.error(f"❌ Timeout calling FBR {operation} ({environment.value})")
            raise GatewayUnreachable(
                f"Timeout calling FBR {operation}",
                details={"operation": operation, "environment": environment.value, "timeout": True},
                cause=e,
            ) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"❌ Network error calling FBR {operation} ({environment.value}): {e}")
            raise GatewayUnreachable(
                f"Network error calling FBR {operation}: {e}",
                details={"operation": operation, "environment": environment.value},
                cause=e,
            ) from e
        finally:
            metrics_collector.record_gateway_call(operation, environment.value, result, time.monotonic() - started)

        status_code = response.status_code
        if status_code >= 500:
            logger.warning(f"⚠️ FBR {operation} answered HTTP {status_code}")
            raise GatewayUnreachable(
                f"FBR {operation} answered HTTP {status_code}",
                details={"operation": operation, "http_status": status_code, "body": response.text[:500]},
            )
        if status_code in (401, 403):
            logger.error(f"❌ FBR rejected credentials for {operation} ({environment.value}): HTTP {status_code}")
            raise GatewayAuthError(
                f"FBR rejected the {environment.value} token (HTTP {status_code})",
                details={"operation": operation, "http_status": status_code},
            )

        try:
            body = response.json()
        except ValueError:
            logger.warning(f"⚠️ FBR {operation} returned a non-JSON body (HTTP {status_code})")
            body = response.text
        return status_code, body

    @staticmethod
    def _payload(invoice: InvoicePayload) -> Dict[str, Any]:
        return invoice.to_payload() if isinstance(invoice, FbrInvoice) else dict(invoice)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate_invoice(
        self,
        invoice: InvoicePayload,
        token: Optional[str] = None,
        tenant_id: Optional[str] = None,
        base_url: Optional[str] = None,
        is_production: Optional[bool] = None,
        config: Optional[TenantFbrConfig] = None,
    ) -> FbrValidationResponse:
        """
        Ask FBR to validate the invoice without recording it.

        Raises GatewayConfigurationError, GatewayAuthError or GatewayUnreachable;
        any structured answer (including rejections) is returned normalized.
        """
        environment, url, resolved_token = self._resolve(token, tenant_id, base_url, is_production, config)
        payload = self._payload(invoice)
        endpoint = f"{url}/{environment.validate_path}"

        @fbr_validate_retry(self.validate_max_attempts, self.retry_min_wait, self.retry_max_wait)
        def _call():
            return self._send("validate", environment, endpoint, payload, resolved_token, validate_timeout())

        status_code, body = _call()
        default_status = "Invalid" if 400 <= status_code < 500 else None
        response = FbrValidationResponse.from_body(body, status_code, default_status)
        logger.info(f"🔍 FBR validation status: {response.status} (HTTP {status_code})")
        return response

    def post_invoice(
        self,
        invoice: InvoicePayload,
        token: Optional[str] = None,
        tenant_id: Optional[str] = None,
        base_url: Optional[str] = None,
        is_production: Optional[bool] = None,
        config: Optional[TenantFbrConfig] = None,
    ) -> FbrPostResponse:
        """
        Record the invoice with FBR. Called at most once per attempt and never
        retried here: a timeout leaves the remote outcome unknown.
        """
        environment, url, resolved_token = self._resolve(token, tenant_id, base_url, is_production, config)
        payload = self._payload(invoice)
        endpoint = f"{url}/{environment.post_path}"

        status_code, body = self._send("post", environment, endpoint, payload, resolved_token, post_timeout())
        default_status = "Invalid" if 400 <= status_code < 500 else None
        response = FbrPostResponse.from_body(body, status_code, default_status)
        if response.success:
            logger.info(f"✅ FBR invoice recorded: {response.invoice_number} ({environment.value})")
        else:
            logger.warning(f"⚠️ FBR post not accepted: status={response.status} error={response.error}")
        return response

    def check_connection(
        self,
        tenant_id: Optional[str] = None,
        is_production: Optional[bool] = None,
        config: Optional[TenantFbrConfig] = None,
    ) -> Dict[str, Any]:
        """Reachability probe against the environment's base URL. Never raises."""
        environment = self.resolve_environment(is_production, config)
        try:
            _, url, _ = self._resolve(None, tenant_id, None, is_production, config)
        except GatewayConfigurationError as e:
            return {"success": False, "environment": environment.value, "error": e.message}

        started = time.monotonic()
        try:
            response = self.session.get(url, timeout=FBR_HEALTHCHECK_TIMEOUT)
        except requests.exceptions.RequestException as e:
            logger.warning(f"⚠️ FBR connection check failed ({environment.value}): {e}")
            return {"success": False, "environment": environment.value, "baseUrl": url, "error": str(e)}

        latency_ms = round((time.monotonic() - started) * 1000, 1)
        return {
            "success": response.status_code < 500,
            "environment": environment.value,
            "baseUrl": url,
            "httpStatus": response.status_code,
            "latencyMs": latency_ms,
        }

    def validate_configuration(
        self,
        tenant_id: Optional[str] = None,
        is_production: Optional[bool] = None,
        config: Optional[TenantFbrConfig] = None,
    ) -> Dict[str, Any]:
        """Checks that a token and a usable base URL resolve for the environment."""
        environment = self.resolve_environment(is_production, config)
        errors = []
        try:
            _, url, _ = self._resolve(None, tenant_id, None, is_production, config)
            if not url.startswith("https://"):
                errors.append(f"FBR {environment.value} base URL must use https")
        except GatewayConfigurationError as e:
            errors.append(e.message)

        seller_ntn = config.seller.ntncnic if config is not None and config.seller else None
        if not (seller_ntn or self.settings.FBR_SELLER_NTNCNIC):
            errors.append("Seller NTN/CNIC is not configured")

        return {"is_valid": not errors, "environment": environment.value, "errors": errors}
