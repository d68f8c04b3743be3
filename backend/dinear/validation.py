"""
dineAR Backend — Input Validation & Sanitization
=================================================

What:  Whitelist projection, schema validation with batched errors, id parsing
       and pagination clamping.
Why:   Every endpoint validates the same way: strip undeclared fields, run the
       endpoint's declarative rules, report every violation at once.
How:   Rules are Pydantic models (see dinear.schemas). This module runs them
       and converts Pydantic's error list into our {field, message} details.

Two independent layers:
    1. project()  — drops any field the endpoint did not declare. Protects
                    against mass assignment (e.g. a client sending owner_id)
                    even if a schema later grows a permissive field.
    2. validate_payload() — type, length, enum and format rules; escaping of
                    free text happens inside the schema validators.
"""

import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from dinear.exceptions import ValidationError

M = TypeVar("M", bound=BaseModel)


def project(payload: Optional[Mapping[str, Any]], allowed: Iterable[str]) -> Dict[str, Any]:
    """Keep only the explicitly allowed fields of a payload."""
    if not payload:
        return {}
    allowed_fields = set(allowed)
    return {key: value for key, value in payload.items() if key in allowed_fields}


def _label(field: str) -> str:
    return field.replace("_", " ").capitalize()


def violations_from(exc: SchemaError) -> List[Dict[str, str]]:
    """
    Convert a Pydantic ValidationError into {field, message} dicts.

    Messages raised by our own validators (ValueError) are passed through
    verbatim, without Pydantic's "Value error, " prefix.
    """
    violations = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ())) or "body"
        if err["type"] == "missing":
            message = f"{_label(field)} is required"
        elif err["type"] == "value_error" and "error" in err.get("ctx", {}):
            message = str(err["ctx"]["error"])
        else:
            message = err["msg"]
        violations.append({"field": field, "message": message})
    return violations


def validate_payload(
    schema: Type[M],
    payload: Optional[Mapping[str, Any]],
    extra_violations: Optional[List[Dict[str, str]]] = None,
) -> M:
    """
    Project the payload onto the schema's fields and validate it.

    Args:
        schema: Pydantic model holding the endpoint's rules
        payload: Raw request fields (JSON object or multipart text fields)
        extra_violations: Violations found outside the schema (e.g. a missing
            upload) reported together with the schema's own

    Returns:
        The validated, sanitized model instance.

    Raises:
        ValidationError with every violation in `details`.
    """
    projected = project(payload, schema.model_fields.keys())
    violations: List[Dict[str, str]] = []
    model: Optional[M] = None
    try:
        model = schema.model_validate(projected)
    except SchemaError as exc:
        violations.extend(violations_from(exc))

    violations.extend(extra_violations or [])
    if violations:
        raise ValidationError(details=violations)
    return model


def parse_uuid(raw: str, field: str = "id") -> uuid.UUID:
    """Parse a path id, rejecting anything that is not a UUID with a 400."""
    try:
        return uuid.UUID(str(raw).strip())
    except ValueError:
        raise ValidationError(
            message="Invalid ID format",
            details=[{"field": field, "message": "Invalid ID format"}],
        )


def clamp_pagination(page: Optional[int], limit: Optional[int], max_limit: int) -> Tuple[int, int]:
    """
    Normalize page/limit query values.

    Out-of-range values are clamped rather than rejected: page floors at 1,
    limit is bounded to [1, max_limit]. Only a missing value takes the default,
    so an explicit 0 clamps to 1.
    """
    page = max(1 if page is None else page, 1)
    limit = min(max(20 if limit is None else limit, 1), max_limit)
    return page, limit
