from __future__ import annotations

from typing import Any, Iterable, Optional


# Maximum free-text length for notes and correction reasons
MAX_NOTE_LENGTH = 500


class LedgerError(Exception):
    """
    Base for every error that may cross the service boundary.

    Carries a stable machine-readable `code` plus a human `message`.
    Routes translate the concrete subclass into an HTTP status.
    """
    status_code = 500

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(LedgerError, ValueError):
    """400-level input problem."""
    status_code = 400


class NotFoundError(LedgerError, LookupError):
    """404-level: entity absent or owned by another tenant (same message for both)."""
    status_code = 404


class ConflictError(LedgerError):
    """409-level: optimistic concurrency or uniqueness conflict."""
    status_code = 409


def require_fields(data: Optional[dict], names: Iterable[str]) -> dict:
    """Ensure a JSON body is present and carries each named key."""
    if not isinstance(data, dict):
        raise ValidationError("BODY_INVALID", "Request body must be a JSON object")
    missing = [name for name in names if data.get(name) in (None, "")]
    if missing:
        raise ValidationError("FIELDS_REQUIRED", f"{', '.join(missing)} required")
    return data


def parse_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def parse_int(
    value: Any,
    name: str,
    *,
    default: Optional[int] = None,
    minimum: Optional[int] = None,
    maximum: Optional[int] = None,
) -> Optional[int]:
    """
    Strict integer coercion for query and body values.

    Rejects booleans, floats, decimals and scientific notation.
    """
    if value is None or value == "":
        return default

    if isinstance(value, bool):
        raise ValidationError("INTEGER_INVALID", f"{name} must be an integer")

    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        # Reject scientific notation (e.g., "1e15") and decimal points
        if "e" in stripped.lower() or "." in stripped:
            raise ValidationError("INTEGER_INVALID", f"{name} must be a plain integer")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError("INTEGER_INVALID", f"{name} must be an integer")
    else:
        raise ValidationError("INTEGER_INVALID", f"{name} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError("INTEGER_OUT_OF_RANGE", f"{name} must be at least {minimum}")
    if maximum is not None and result > maximum:
        raise ValidationError("INTEGER_OUT_OF_RANGE", f"{name} must be at most {maximum}")
    return result


def validate_text(value: Any, name: str, code: str, max_length: int = MAX_NOTE_LENGTH) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("TEXT_INVALID", f"{name} must be text")
    if len(value) > max_length:
        raise ValidationError(code, f"{name} must be at most {max_length} characters")
    return value
