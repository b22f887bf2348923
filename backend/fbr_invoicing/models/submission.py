# fbr_invoicing/models/submission.py
#
# Normalized FBR responses and the per-attempt submission result.

from __future__ import annotations
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict


class SubmissionOutcome(str, Enum):
    PREVIEW = "preview"
    VALIDATION_FAILED = "validation-failed"
    MAPPING_FAILED = "mapping-failed"
    FBR_VALIDATION_FAILED = "fbr-validation-failed"
    FBR_POST_FAILED = "fbr-post-failed"
    SUCCESS = "success"
    ERROR = "error"


class SubmissionState(str, Enum):
    RECEIVED = "RECEIVED"
    LOCALLY_VALIDATED = "LOCALLY_VALIDATED"
    MAPPED = "MAPPED"
    REMOTELY_VALIDATED = "REMOTELY_VALIDATED"
    POSTED = "POSTED"
    LOCAL_VALIDATION_FAILED = "LOCAL_VALIDATION_FAILED"
    MAPPING_FAILED = "MAPPING_FAILED"
    REMOTE_VALIDATION_FAILED = "REMOTE_VALIDATION_FAILED"
    POST_FAILED = "POST_FAILED"
    ERROR = "ERROR"


# Step tag reported to HTTP callers for each outcome
OUTCOME_STEPS: Dict[SubmissionOutcome, str] = {
    SubmissionOutcome.PREVIEW: "preview",
    SubmissionOutcome.VALIDATION_FAILED: "validation",
    SubmissionOutcome.MAPPING_FAILED: "mapping",
    SubmissionOutcome.FBR_VALIDATION_FAILED: "validate",
    SubmissionOutcome.FBR_POST_FAILED: "post",
    SubmissionOutcome.SUCCESS: "post",
    SubmissionOutcome.ERROR: "error",
}


class FbrValidationResponse(BaseModel):
    """
    Normalized view of the FBR validation answer.

    FBR wraps the verdict in `validationResponse` with per-line entries in
    `invoiceStatuses`; `raw` keeps the body exactly as received.
    """
    model_config = ConfigDict(populate_by_name=True)

    status: Optional[str] = None
    status_code: Optional[str] = None
    error: Optional[str] = None
    item_errors: Dict[int, str] = Field(default_factory=dict)
    http_status: Optional[int] = None
    raw: Any = None

    @property
    def is_valid(self) -> bool:
        return self.status == "Valid"

    @classmethod
    def from_body(cls, body: Any, http_status: Optional[int] = None, default_status: Optional[str] = None):
        """Build from a decoded JSON body. Non-dict bodies produce status None."""
        if not isinstance(body, dict):
            return cls(http_status=http_status, raw=body, error="Malformed response from FBR")

        verdict = body.get("validationResponse")
        if not isinstance(verdict, dict):
            verdict = body

        status = verdict.get("status") or default_status
        status_code = verdict.get("statusCode")
        return cls(
            status=str(status) if status is not None else None,
            status_code=str(status_code) if status_code is not None else None,
            error=verdict.get("error") or None,
            item_errors=_item_errors(verdict.get("invoiceStatuses")),
            http_status=http_status,
            raw=body,
        )


class FbrPostResponse(FbrValidationResponse):
    invoice_number: Optional[str] = None
    dated: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.is_valid and bool(self.invoice_number)

    @classmethod
    def from_body(cls, body: Any, http_status: Optional[int] = None, default_status: Optional[str] = None):
        base = FbrValidationResponse.from_body(body, http_status, default_status)
        data = base.model_dump()
        if isinstance(body, dict):
            number = body.get("invoiceNumber")
            data["invoice_number"] = str(number) if number else None
            data["dated"] = body.get("dated")
        return cls(**data)


def _item_errors(statuses: Any) -> Dict[int, str]:
    errors: Dict[int, str] = {}
    if not isinstance(statuses, list):
        return errors
    for position, entry in enumerate(statuses, start=1):
        if not isinstance(entry, dict):
            continue
        message = entry.get("error")
        if not message:
            continue
        try:
            sequence = int(entry.get("itemSNo") or position)
        except (TypeError, ValueError):
            sequence = position
        code = entry.get("errorCode")
        errors[sequence] = f"[{code}] {message}" if code else str(message)
    return errors


class SubmissionResult(BaseModel):
    """Outcome of one explicit submission attempt. Never reused across attempts."""
    outcome: SubmissionOutcome
    final_state: SubmissionState
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    invoice: Optional[Dict[str, Any]] = None
    validation_response: Optional[FbrValidationResponse] = None
    post_response: Optional[FbrPostResponse] = None
    error_kind: Optional[str] = None
    invoice_number: Optional[str] = None
    item_errors: Dict[int, str] = Field(default_factory=dict)
    outcome_unknown: bool = False

    @property
    def ok(self) -> bool:
        return self.outcome in (SubmissionOutcome.SUCCESS, SubmissionOutcome.PREVIEW)

    @property
    def step(self) -> str:
        return OUTCOME_STEPS[self.outcome]

    @property
    def http_status(self) -> int:
        if self.ok:
            return 200
        if self.outcome == SubmissionOutcome.ERROR:
            return 500
        return 400

    def to_dict(self) -> Dict[str, Any]:
        """Response body for HTTP callers. Raw FBR bodies are passed through untouched."""
        data: Dict[str, Any] = {
            "step": self.step,
            "ok": self.ok,
            "outcome": self.outcome.value,
            "finalState": self.final_state.value,
        }
        if self.errors:
            data["error"] = "; ".join(self.errors)
            data["errors"] = list(self.errors)
        if self.warnings:
            data["warnings"] = list(self.warnings)
        if self.error_kind:
            data["errorKind"] = self.error_kind
        if self.outcome_unknown:
            data["outcomeUnknown"] = True
        if self.item_errors:
            data["itemErrors"] = {str(k): v for k, v in self.item_errors.items()}
        if self.invoice_number:
            data["invoiceNumber"] = self.invoice_number
        if self.invoice is not None:
            data["fbrInvoice"] = self.invoice
        if self.post_response is not None:
            data["response"] = self.post_response.raw
            if self.validation_response is not None:
                data["validation"] = self.validation_response.raw
        elif self.validation_response is not None:
            data["response"] = self.validation_response.raw
        return data
