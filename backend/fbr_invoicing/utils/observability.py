# Structured logging for the FBR submission service (JSON lines for Loki/Grafana)

import logging
import json
import re
import sys
from datetime import datetime
from typing import Optional
from contextvars import ContextVar

# Context variables for request tracing
request_id_var: ContextVar[str] = ContextVar('request_id', default='')
tenant_id_var: ContextVar[str] = ContextVar('tenant_id', default='')

_RECORD_ATTRS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename', 'module',
    'lineno', 'funcName', 'created', 'msecs', 'relativeCreated', 'thread', 'threadName',
    'processName', 'process', 'message', 'exc_info', 'exc_text', 'stack_info',
    'getMessage', 'taskName',
}

_BEARER_RE = re.compile(r'(Bearer\s+)[A-Za-z0-9\-._~+/=]+', re.IGNORECASE)
_TOKEN_FIELD_RE = re.compile(
    r'''(["']?[A-Za-z_]*(?:token|authorization|password|secret)["']?\s*[:=]\s*["']?)([^"',\s}]+)''',
    re.IGNORECASE,
)


def redact_secrets(text: str) -> str:
    """Mask bearer tokens and token-like key/value pairs inside free text."""
    if not text:
        return text
    text = _BEARER_RE.sub(r'\1***', text)
    return _TOKEN_FIELD_RE.sub(r'\1***', text)


class TokenRedactingFilter(logging.Filter):
    """
    Masks FBR bearer tokens in every record before it reaches a handler.
    The message is rendered once and the args are cleared.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_secrets(message)
        if redacted != message or record.args:
            record.msg = redacted
            record.args = None
        return True


class StructuredFormatter(logging.Formatter):
    """
    Formatter emitting one JSON object per record.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            'timestamp': datetime.utcnow().isoformat() + 'Z',
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        req_id = request_id_var.get('')
        if req_id:
            log_entry['request_id'] = req_id

        tenant = tenant_id_var.get('')
        if tenant:
            log_entry['tenant_id'] = tenant

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS:
                log_entry[key] = value

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """
    Configure the root logger: stdout handler, token redaction, optional JSON.
    Safe to call more than once.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()

    for handler in list(root.handlers):
        if getattr(handler, '_fbr_handler', False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler._fbr_handler = True
    if json_logs:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s [%(name)s] %(message)s'))
    handler.addFilter(TokenRedactingFilter())

    root.addHandler(handler)
    root.setLevel(log_level)


class ObservabilityLogger:
    """
    Thin wrapper around a named logger for business events and errors.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def set_request_context(self, request_id: str, tenant_id: Optional[str] = None):
        request_id_var.set(request_id)
        if tenant_id:
            tenant_id_var.set(tenant_id)

    def clear_request_context(self):
        request_id_var.set('')
        tenant_id_var.set('')

    def log_business_event(self, event_name: str, tenant_id: str = "", **kwargs):
        self.logger.info(
            f"Business Event: {event_name}",
            extra={
                'event_type': 'business_event',
                'event_name': event_name,
                'tenant_id': tenant_id or tenant_id_var.get(''),
                **kwargs
            }
        )

    def log_error(self, error_type: str, error_message: str, tenant_id: str = "", exc_info=None, **kwargs):
        self.logger.error(
            f"Error: {error_type} - {redact_secrets(error_message)}",
            exc_info=exc_info,
            extra={
                'event_type': 'error',
                'error_type': error_type,
                'error_message': redact_secrets(error_message),
                'tenant_id': tenant_id or tenant_id_var.get(''),
                **kwargs
            }
        )


observability_logger = ObservabilityLogger("fbr_invoicing")
