"""
Sessions Router - session storage endpoints

This module exposes the SessionService over HTTP under /api/sessions.

Payloads are taken from the raw request body so the service sees exactly the
JSON text the caller sent. Typed errors raised by the service are mapped to
HTTP status codes by the application's exception handlers (see main.py).

Route order matters: ``/new`` and ``/query`` are declared before the
``/{session_id}`` routes so they are not captured as ids.
"""

import json
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import Response

from session_service.api.deps import get_session_service
from session_service.models.responses import SessionIdResponse, SessionResponse
from session_service.sessions.service import SessionService


# =============================================================================
# Router Setup
# =============================================================================

router = APIRouter(
    prefix="/api/sessions",
    tags=["Sessions"],
)


def parse_query_value(raw_value: str) -> Any:
    """
    Interpret a query-string value.

    JSON literals (numbers, booleans, null, quoted strings, objects, arrays)
    are decoded; anything else is used as a plain string.

    Examples:
        >>> parse_query_value("42")
        42
        >>> parse_query_value("blue")
        'blue'
    """
    try:
        return json.loads(raw_value)
    except ValueError:
        return raw_value


# =============================================================================
# POST /api/sessions/{source}/{type} - Add Session (deduplicating)
# =============================================================================


@router.post(
    "/{source}/{session_type}",
    response_model=SessionIdResponse,
    summary="Add a session",
    description="Store a JSON payload; identical content returns the existing id.",
)
async def add_session(
    source: str,
    session_type: str,
    request: Request,
    service: SessionService = Depends(get_session_service),
) -> SessionIdResponse:
    """
    Add a session, deduplicating on content.

    Returns:
        SessionIdResponse with the new or pre-existing id
    """
    session = await service.add_session(source, session_type, await request.body())
    return SessionIdResponse(id=session.id)


# =============================================================================
# POST /api/sessions/{source}/{type}/new - Strict Create
# =============================================================================


@router.post(
    "/{source}/{session_type}/new",
    status_code=status.HTTP_201_CREATED,
    response_model=SessionIdResponse,
    summary="Create a new session",
    description="Strictly insert a session; duplicate id or content is a 409.",
)
async def create_new_session(
    source: str,
    session_type: str,
    request: Request,
    session_id: Optional[str] = Query(default=None, alias="id"),
    service: SessionService = Depends(get_session_service),
) -> SessionIdResponse:
    """
    Create a session, optionally with a caller-chosen id.

    Returns:
        SessionIdResponse with the id of the created session
    """
    session = await service.create_new_session(
        session_id, source, session_type, await request.body()
    )
    return SessionIdResponse(id=session.id)


# =============================================================================
# GET /api/sessions/{source}/{type} - List Sessions
# =============================================================================


@router.get(
    "/{source}/{session_type}",
    response_model=list[SessionResponse],
    summary="List sessions",
)
async def get_sessions(
    source: str,
    session_type: str,
    service: SessionService = Depends(get_session_service),
) -> list[SessionResponse]:
    """List every session of a source and type, in insertion order."""
    sessions = await service.get_sessions(source, session_type)
    return [SessionResponse.from_session(session) for session in sessions]


# =============================================================================
# GET /api/sessions/{source}/{type}/query - Query Sessions
# =============================================================================


@router.get(
    "/{source}/{session_type}/query",
    response_model=list[SessionResponse],
    summary="Query sessions by payload field",
)
async def get_sessions_by_query(
    source: str,
    session_type: str,
    field: str = Query(..., description="Dotted path inside the payload"),
    value: str = Query(..., description="JSON literal or plain string"),
    service: SessionService = Depends(get_session_service),
) -> list[SessionResponse]:
    """List sessions whose payload field equals the given value."""
    sessions = await service.get_sessions_by_query(
        source, session_type, field, parse_query_value(value)
    )
    return [SessionResponse.from_session(session) for session in sessions]


# =============================================================================
# /api/sessions/{source}/{type}/{id} - Point Operations
# =============================================================================


@router.get(
    "/{source}/{session_type}/{session_id}",
    response_model=SessionResponse,
    summary="Get a session",
)
async def get_session(
    source: str,
    session_type: str,
    session_id: str,
    service: SessionService = Depends(get_session_service),
) -> SessionResponse:
    """Retrieve a session by id; 404 if it does not exist."""
    session = await service.get_session(session_id, source, session_type)
    return SessionResponse.from_session(session)


@router.put(
    "/{source}/{session_type}/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Replace a session's payload",
)
async def update_session(
    source: str,
    session_type: str,
    session_id: str,
    request: Request,
    service: SessionService = Depends(get_session_service),
) -> Response:
    """Replace the payload of an existing session."""
    await service.update_session(session_id, source, session_type, await request.body())
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/{source}/{session_type}/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a session",
)
async def delete_session(
    source: str,
    session_type: str,
    session_id: str,
    service: SessionService = Depends(get_session_service),
) -> Response:
    """Delete a session by id; 404 if it does not exist."""
    await service.delete_session(session_id, source, session_type)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
