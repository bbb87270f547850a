"""Shared response envelopes: the error body and partial-batch results."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, computed_field

from partsource.exceptions import AppException


class ErrorDetail(BaseModel):
    """A single field-level or contextual error detail."""

    field: str | None = None
    message: str


class ErrorBody(BaseModel):
    """Structured error body returned inside every error response."""

    code: str
    message: str
    details: list[ErrorDetail] = []
    request_id: str = Field(alias="requestId")

    model_config = {"populate_by_name": True}


class ErrorResponse(BaseModel):
    """Top-level error envelope."""

    error: ErrorBody


class BatchFailure(BaseModel):
    """One item of a bulk operation that did not land."""

    key: str | None = None
    code: str
    message: str
    details: list[dict] = []


class BatchResult(BaseModel):
    """Outcome of a bulk operation that commits item by item.

    Failed items never roll back succeeded ones; callers read both lists.
    """

    succeeded: list[dict[str, Any]] = []
    failed: list[BatchFailure] = []

    @computed_field  # type: ignore[prop-decorator]
    @property
    def success(self) -> bool:
        return not self.failed

    def add_success(self, item: dict[str, Any]) -> None:
        self.succeeded.append(item)

    def add_failure(self, key: object | None, exc: AppException) -> None:
        self.failed.append(
            BatchFailure(
                key=None if key is None else str(key),
                code=exc.code,
                message=exc.message,
                details=exc.details,
            )
        )


COMMON_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    404: {"model": ErrorResponse, "description": "Resource not found"},
    409: {"model": ErrorResponse, "description": "Integrity conflict"},
    422: {"model": ErrorResponse, "description": "Validation or business rule failure"},
}
