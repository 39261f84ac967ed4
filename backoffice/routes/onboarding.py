from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Response
from pydantic import BaseModel, Field

from ..child_editor import CategoryEditor
from ..config import get_config
from ..errors import NotFound, RemoteStoreError, UnknownRecord, ValidationError
from ..onboarding_session import OnboardingSession, SessionRegistry
from ..remote_store import CustomerStore, OnboardingStore, SupabaseCategoryStore
from ..schemas import (
    ChildRecordOut,
    CustomerFields,
    OnboardingSessionOut,
    OnboardingType,
)
from ..supabase import SupabaseClient, get_supabase_client

router = APIRouter(prefix="/api/v1/onboarding-sessions", tags=["onboarding"])
logger = logging.getLogger(__name__)

SESSIONS = SessionRegistry(idle_seconds=get_config().session_idle_seconds)


def get_registry() -> SessionRegistry:
    return SESSIONS


class CreateSessionPayload(BaseModel):
    customer_id: Optional[str] = None
    customer: Optional[CustomerFields] = None
    onboarding_type: OnboardingType = OnboardingType.DILLYS
    notes: Optional[str] = None


class UpdateSessionPayload(BaseModel):
    onboarding_type: Optional[OnboardingType] = None
    notes: Optional[str] = None
    customer: Optional[CustomerFields] = None


class SubmitResponse(BaseModel):
    session: OnboardingSessionOut
    unsynced: Dict[str, int] = Field(default_factory=dict)


def build_session(client: SupabaseClient, payload: CreateSessionPayload) -> OnboardingSession:
    return OnboardingSession(
        parent_store=OnboardingStore(client),
        customer_store=CustomerStore(client),
        category_store=lambda schema: SupabaseCategoryStore(client, schema),
        onboarding_type=payload.onboarding_type,
        notes=payload.notes,
        customer_id=payload.customer_id,
        customer_fields=payload.customer,
    )


SessionFactory = Callable[[SupabaseClient, CreateSessionPayload], OnboardingSession]


def get_session_factory() -> SessionFactory:
    return build_session


def attach_client(session: OnboardingSession, client: Optional[SupabaseClient]) -> OnboardingSession:
    """Point every store of ``session`` at this request's client.

    Sessions outlive the bearer token they were opened with.
    """

    if client is None:
        return session
    for store in session.stores():
        if hasattr(store, "client"):
            store.client = client
    return session


def _require_session(
    registry: SessionRegistry,
    session_id: str,
    client: Optional[SupabaseClient] = None,
) -> OnboardingSession:
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Onboarding session not found.")
    return attach_client(session, client)


def _require_editor(session: OnboardingSession, category: str) -> CategoryEditor:
    try:
        return session.editor(category)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown category: {category}") from exc


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail=exc.message)
    if isinstance(exc, (UnknownRecord, NotFound)):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, RemoteStoreError):
        return HTTPException(
            status_code=503,
            detail="The data store is temporarily unavailable. Your changes are kept; try again.",
        )
    return HTTPException(status_code=500, detail=str(exc))


@router.post("", response_model=OnboardingSessionOut, status_code=201)
async def create_session(
    payload: CreateSessionPayload,
    client: SupabaseClient = Depends(get_supabase_client),
    registry: SessionRegistry = Depends(get_registry),
    factory: SessionFactory = Depends(get_session_factory),
) -> OnboardingSessionOut:
    session = registry.add(factory(client, payload))
    logger.info(
        "onboarding session opened",
        extra={"session_id": session.session_id, "onboarding_type": session.onboarding_type.value},
    )
    return session.view()


@router.get("/{session_id}", response_model=OnboardingSessionOut)
async def get_session(
    session_id: str,
    client: SupabaseClient = Depends(get_supabase_client),
    registry: SessionRegistry = Depends(get_registry),
) -> OnboardingSessionOut:
    return _require_session(registry, session_id, client).view()


@router.patch("/{session_id}", response_model=OnboardingSessionOut)
async def update_session(
    session_id: str,
    payload: UpdateSessionPayload,
    client: SupabaseClient = Depends(get_supabase_client),
    registry: SessionRegistry = Depends(get_registry),
) -> OnboardingSessionOut:
    session = _require_session(registry, session_id, client)
    session.update_details(
        onboarding_type=payload.onboarding_type,
        notes=payload.notes,
        customer_fields=payload.customer,
    )
    return session.view()


@router.get("/{session_id}/categories/{category}", response_model=List[ChildRecordOut])
async def list_rows(
    session_id: str,
    category: str,
    client: SupabaseClient = Depends(get_supabase_client),
    registry: SessionRegistry = Depends(get_registry),
) -> List[ChildRecordOut]:
    editor = _require_editor(_require_session(registry, session_id, client), category)
    return [editor.describe(record) for record in editor.records()]


@router.post(
    "/{session_id}/categories/{category}",
    response_model=ChildRecordOut,
    status_code=201,
)
async def add_row(
    session_id: str,
    category: str,
    fields: Dict[str, Any] = Body(...),
    client: SupabaseClient = Depends(get_supabase_client),
    registry: SessionRegistry = Depends(get_registry),
) -> ChildRecordOut:
    editor = _require_editor(_require_session(registry, session_id, client), category)
    try:
        record = await editor.add(fields)
    except ValidationError as exc:
        raise _http_error(exc) from exc
    return editor.describe(record)


@router.patch(
    "/{session_id}/categories/{category}/{local_key}",
    response_model=ChildRecordOut,
)
async def edit_row(
    session_id: str,
    category: str,
    local_key: str,
    patch: Dict[str, Any] = Body(...),
    client: SupabaseClient = Depends(get_supabase_client),
    registry: SessionRegistry = Depends(get_registry),
) -> ChildRecordOut:
    editor = _require_editor(_require_session(registry, session_id, client), category)
    try:
        record = await editor.edit(local_key, patch)
    except (ValidationError, UnknownRecord, RemoteStoreError) as exc:
        raise _http_error(exc) from exc
    return editor.describe(record)


@router.delete("/{session_id}/categories/{category}/{local_key}", status_code=204)
async def remove_row(
    session_id: str,
    category: str,
    local_key: str,
    client: SupabaseClient = Depends(get_supabase_client),
    registry: SessionRegistry = Depends(get_registry),
) -> Response:
    editor = _require_editor(_require_session(registry, session_id, client), category)
    try:
        await editor.remove(local_key)
    except (UnknownRecord, RemoteStoreError) as exc:
        raise _http_error(exc) from exc
    return Response(status_code=204)


@router.post(
    "/{session_id}/categories/{category}/refresh",
    response_model=List[ChildRecordOut],
)
async def refresh_rows(
    session_id: str,
    category: str,
    client: SupabaseClient = Depends(get_supabase_client),
    registry: SessionRegistry = Depends(get_registry),
) -> List[ChildRecordOut]:
    editor = _require_editor(_require_session(registry, session_id, client), category)
    await editor.refresh_and_sync()
    return [editor.describe(record) for record in editor.records()]


@router.post("/{session_id}/save-draft", response_model=OnboardingSessionOut)
async def save_draft(
    session_id: str,
    client: SupabaseClient = Depends(get_supabase_client),
    registry: SessionRegistry = Depends(get_registry),
) -> OnboardingSessionOut:
    session = _require_session(registry, session_id, client)
    try:
        await session.save_draft()
    except (ValidationError, RemoteStoreError) as exc:
        raise _http_error(exc) from exc
    return session.view()


@router.post("/{session_id}/submit", response_model=SubmitResponse)
async def submit(
    session_id: str,
    client: SupabaseClient = Depends(get_supabase_client),
    registry: SessionRegistry = Depends(get_registry),
) -> SubmitResponse:
    session = _require_session(registry, session_id, client)
    try:
        await session.submit()
    except (ValidationError, RemoteStoreError) as exc:
        raise _http_error(exc) from exc
    view = session.view()
    registry.discard(session_id)
    unsynced = {item.category: item.pending_count for item in view.categories if item.pending_count}
    logger.info(
        "onboarding submitted",
        extra={"session_id": session_id, "onboarding_id": view.onboarding_id, "unsynced": unsynced},
    )
    return SubmitResponse(session=view, unsynced=unsynced)
