"""
Domain Models - Session entity

This module contains the Session value object: identity, owning source, type
tag and the opaque JSON payload, together with the content checksum used as the
deduplication key.

The payload is kept as a structured value (dict/list/scalar tree) so the store
can filter on nested fields. A canonical serializer (sorted keys, compact
separators) is used only to compute the checksum; it is independent of how the
store itself encodes documents.

Pattern: Domain models as value objects (frozen Pydantic models)
"""

import hashlib
import json
from typing import Any, Optional, Union

from pydantic import BaseModel, Field

from session_service.core.config import get_settings


MAX_PAYLOAD_DEPTH = 100


# =============================================================================
# Validation Error
# =============================================================================


class SessionValidationError(ValueError):
    """
    Raised when a Session cannot be built from caller input.

    Collects every constraint violation so callers see all of them at once.

    Attributes:
        errors: Individual constraint messages.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__("".join(f"{error};" for error in errors))


# =============================================================================
# Canonical JSON and Checksum
# =============================================================================


def canonical_json(data: Any) -> str:
    """
    Serialize a JSON value deterministically.

    Object keys are sorted and separators are compact, so two documents that
    differ only in key order or whitespace serialize identically.

    Args:
        data: Parsed JSON value.

    Returns:
        Canonical JSON text.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def compute_checksum(data: Any) -> str:
    """
    Compute the content checksum of a parsed payload.

    Args:
        data: Parsed JSON value.

    Returns:
        SHA-256 hex digest of the canonical serialization.
    """
    return hashlib.sha256(canonical_json(data).encode("utf-8")).hexdigest()


def _reject_constant(name: str) -> Any:
    raise ValueError(f"unsupported JSON constant {name}")


def payload_depth(data: Any) -> int:
    """Return how many arrays and objects are nested in a parsed payload."""
    deepest = 0
    pending = [(data, 1)]
    while pending:
        value, depth = pending.pop()
        if isinstance(value, dict):
            children = value.values()
        elif isinstance(value, list):
            children = value
        else:
            continue
        deepest = max(deepest, depth)
        pending.extend((child, depth + 1) for child in children)
    return deepest


def parse_payload(raw_payload: Union[str, bytes, None]) -> Any:
    """
    Parse a caller-supplied JSON payload.

    Args:
        raw_payload: JSON text.

    Returns:
        The parsed value.

    Raises:
        SessionValidationError: If the payload is missing or not valid JSON,
            or nested deeper than MAX_PAYLOAD_DEPTH levels.
    """
    if raw_payload is None:
        raise SessionValidationError(["data is required"])
    try:
        data = json.loads(raw_payload, parse_constant=_reject_constant)
    except RecursionError as e:
        raise SessionValidationError([_too_deep_message()]) from e
    except (TypeError, ValueError) as e:
        raise SessionValidationError([f"data is not valid JSON: {e}"]) from e
    if payload_depth(data) > MAX_PAYLOAD_DEPTH:
        raise SessionValidationError([_too_deep_message()])
    return data


def _too_deep_message() -> str:
    return f"data has a maximum nesting depth of {MAX_PAYLOAD_DEPTH}"


def describe_types(session_types: list[str]) -> str:
    """Render the recognized types the way constraint messages quote them."""
    quoted = [f"'{session_type}'" for session_type in session_types]
    if len(quoted) == 1:
        return quoted[0]
    return ", ".join(quoted[:-1]) + " and " + quoted[-1]


def validate_source_and_type(
    source: Optional[str],
    session_type: Optional[str],
    session_types: Optional[list[str]] = None,
    source_min_length: Optional[int] = None,
) -> list[str]:
    """
    Check source and type constraints.

    Args:
        source: Owning application identifier.
        session_type: Requested type tag.
        session_types: Recognized types (defaults to settings).
        source_min_length: Minimum source length (defaults to settings).

    Returns:
        Constraint messages; empty when both values are valid.
    """
    settings = get_settings()
    if session_types is None:
        session_types = settings.session_types
    if source_min_length is None:
        source_min_length = settings.source_min_length

    errors = []
    if source is None or len(source) < source_min_length:
        errors.append(f"source has a minimum length of {source_min_length}")
    if session_type not in session_types:
        errors.append(f"valid types are: {describe_types(session_types)}")
    return errors


# =============================================================================
# Session Model
# =============================================================================


class Session(BaseModel):
    """
    A stored JSON document owned by a source and partitioned by type.

    Pattern: Value object; identity is assigned by copying, never by mutation.

    Attributes:
        id: Unique identifier, unset until the repository persists the session.
        source: Owning application or tenant.
        type: Category tag selecting the physical collection.
        data: Opaque structured payload.
        checksum: SHA-256 of the canonical payload serialization.

    Example:
        >>> session = Session.from_payload("portal", "main_session", '{"k": "v"}')
        >>> session.data
        {'k': 'v'}
    """

    id: Optional[str] = Field(default=None, description="Unique session identifier")
    source: str = Field(..., description="Owning application or tenant")
    type: str = Field(..., description="Session type (collection name)")
    data: Any = Field(..., description="Structured session payload")
    checksum: str = Field(..., description="Checksum of the canonical payload")

    model_config = {"frozen": True}

    @classmethod
    def from_payload(
        cls,
        source: Optional[str],
        session_type: Optional[str],
        raw_payload: Union[str, bytes, None],
        session_id: Optional[str] = None,
        session_types: Optional[list[str]] = None,
        source_min_length: Optional[int] = None,
    ) -> "Session":
        """
        Validate caller input and build a Session.

        Args:
            source: Owning application identifier (min length from settings).
            session_type: Type tag (must be a recognized type).
            raw_payload: JSON text of the payload.
            session_id: Optional caller-supplied id.
            session_types: Recognized types (defaults to settings).
            source_min_length: Minimum source length (defaults to settings).

        Returns:
            The validated Session, with its checksum computed.

        Raises:
            SessionValidationError: With every violated constraint.
        """
        errors = validate_source_and_type(
            source, session_type, session_types, source_min_length
        )
        try:
            data = parse_payload(raw_payload)
        except SessionValidationError as e:
            errors.extend(e.errors)
        if errors:
            raise SessionValidationError(errors)

        return cls(
            id=session_id,
            source=source,
            type=session_type,
            data=data,
            checksum=compute_checksum(data),
        )

    def with_payload(self, raw_payload: Union[str, bytes, None]) -> "Session":
        """
        Return a copy with the payload replaced and the checksum recomputed.

        Identity (id, source, type) is unchanged.

        Raises:
            SessionValidationError: If the payload is not valid JSON.
        """
        data = parse_payload(raw_payload)
        return self.model_copy(update={"data": data, "checksum": compute_checksum(data)})

    def with_id(self, session_id: str) -> "Session":
        """Return a copy carrying the assigned id."""
        return self.model_copy(update={"id": session_id})

    def to_document(self) -> dict[str, Any]:
        """Convert to the store's document representation."""
        document = self.model_dump()
        if document["id"] is None:
            del document["id"]
        return document

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "Session":
        """Build a Session from a stored document; recomputes a missing checksum."""
        checksum = document.get("checksum") or compute_checksum(document.get("data"))
        return cls(
            id=document.get("id"),
            source=document["source"],
            type=document["type"],
            data=document.get("data"),
            checksum=checksum,
        )
