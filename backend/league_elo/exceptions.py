from fastapi import HTTPException
from pydantic import BaseModel
from typing import Optional


class ProblemDetail(BaseModel):
    """RFC 7807 compliant error response."""

    type: str = "about:blank"
    title: str
    detail: Optional[str] = None
    status: int
    instance: Optional[str] = None
    code: str


class DomainException(Exception):
    """Base class for domain-specific exceptions."""

    def __init__(
        self,
        status_code: int,
        title: str,
        *,
        code: str,
        detail: str | None = None,
        type_: str = "about:blank",
    ) -> None:
        super().__init__(detail or title)
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type = type_
        self.code = code


class ValidationError(DomainException):
    """Illegal score/format combination or missing input; the caller may resubmit."""

    def __init__(self, detail: str, *, code: str = "validation_error") -> None:
        super().__init__(
            status_code=400,
            title="Invalid request",
            detail=detail,
            code=code,
        )


class AuthorizationError(DomainException):
    def __init__(self, detail: str, *, code: str = "not_authorized") -> None:
        super().__init__(
            status_code=403,
            title="Not authorized",
            detail=detail,
            code=code,
        )


class NotAMemberError(AuthorizationError):
    def __init__(self, detail: str) -> None:
        super().__init__(detail, code="not_a_member")


class NotFoundError(DomainException):
    def __init__(self, kind: str, identifier: object) -> None:
        super().__init__(
            status_code=404,
            title=f"{kind.capitalize()} not found",
            detail=f"{kind} '{identifier}' not found",
            code=f"{kind.replace(' ', '_')}_not_found",
        )
        self.kind = kind
        self.identifier = identifier


class ConflictError(DomainException):
    def __init__(self, detail: str, *, code: str = "conflict") -> None:
        super().__init__(
            status_code=409,
            title="Conflict",
            detail=detail,
            code=code,
        )


class StorageError(DomainException):
    """A statement or transaction failed; the unit of work was rolled back."""

    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=500,
            title="Storage failure",
            detail=detail,
            code="storage_error",
        )


class ConsolidationInterrupted(DomainException):
    """A consolidation run stopped at the first failing match.

    Matches applied before the failure stay applied; ``applied_count`` tells an
    operator how far the run got so it can be resumed.
    """

    def __init__(
        self,
        league_id: int,
        applied_count: int,
        failed_match_id: int,
        cause: Exception,
    ) -> None:
        if isinstance(cause, DomainException):
            status_code, code, reason = cause.status_code, cause.code, cause.detail or cause.title
        else:
            status_code, code, reason = 500, "consolidation_interrupted", str(cause)
        super().__init__(
            status_code=status_code,
            title="Consolidation interrupted",
            detail=(
                f"consolidation of league {league_id} stopped at match "
                f"{failed_match_id} after applying {applied_count} match(es): {reason}"
            ),
            code=code,
        )
        self.league_id = league_id
        self.applied_count = applied_count
        self.failed_match_id = failed_match_id
        self.cause = cause


def http_problem(
    status_code: int,
    detail: str,
    code: str,
    *,
    headers: Optional[dict[str, str]] = None,
) -> HTTPException:
    """Create an HTTPException with an attached problem code."""

    exc = HTTPException(status_code=status_code, detail=detail, headers=headers)
    setattr(exc, "code", code)
    return exc
