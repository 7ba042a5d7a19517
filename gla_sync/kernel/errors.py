from __future__ import annotations

import re
from typing import Any


_ERROR_CODE_RE = re.compile(r"^[a-z][a-z0-9_]*(\.[a-z][a-z0-9_]*)*$")


class GlaError(Exception):
    """Base typed error for gla-sync.

    - Stable `code` for programmatic handling (worker bookkeeping, logs).
    - Human-readable `message`.
    - Optional `meta` payload for debugging (safe-to-log only).
    """

    def __init__(
        self,
        *,
        code: str,
        message: str,
        meta: dict[str, Any] | None = None,
    ) -> None:
        if not _ERROR_CODE_RE.fullmatch(code):
            raise ValueError(
                "Invalid error code. Expected dot-separated lowercase tokens, "
                f"got: {code!r}"
            )
        super().__init__(message)
        self.code = code
        self.message = message
        self.meta = dict(meta or {})

    def to_log_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "error": self.message}
        if self.meta:
            payload["meta"] = self.meta
        return payload


class NotFoundError(GlaError):
    def __init__(self, *, message: str = "Not found", code: str = "resource.not_found", meta: dict[str, Any] | None = None):
        super().__init__(code=code, message=message, meta=meta)


class ValidationError(GlaError):
    def __init__(
        self,
        *,
        message: str = "Validation error",
        code: str = "request.validation_error",
        meta: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, meta=meta)


class JobError(GlaError):
    def __init__(
        self,
        *,
        message: str = "Job error",
        code: str = "job.error",
        meta: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, meta=meta)

    @classmethod
    def stopped_due_to_high_failure_rate(cls, job_name: str, *, failures: int, threshold: int) -> "JobError":
        return cls(
            message=f"The {job_name} job was stopped because its failure rate is above the allowed threshold.",
            code="job.stopped_high_failure_rate",
            meta={"job": job_name, "failures": failures, "threshold": threshold},
        )

    @classmethod
    def invalid_batch_size(cls, job_name: str, batch_size: Any) -> "JobError":
        return cls(
            message=f"Batch size for the {job_name} job must be a positive integer.",
            code="job.invalid_batch_size",
            meta={"job": job_name, "batch_size": batch_size},
        )


class UpstreamError(GlaError):
    def __init__(
        self,
        *,
        message: str = "Upstream service error",
        code: str = "upstream.error",
        meta: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, meta=meta)
