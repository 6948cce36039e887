"""Connections API: chat-to-tenant bindings."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi_pagination import Page, Params
from fastapi_pagination.ext.sqlalchemy import paginate
from sqlalchemy.orm import Session

from app.constants.messengers import MessengerType
from app.db import get_db
from app.schemas.profile import ChatConnectionRead
from app.services.identity_resolver import IdentityResolver
from app.services.chat_connection_service import ChatConnectionService

router = APIRouter(
    prefix="/connections",
    tags=["connections"],
    responses={404: {"description": "Not found"}},
)


@router.get("", response_model=Page[ChatConnectionRead])
def list_connections(
    domain: Optional[str] = None,
    messenger_type: Optional[MessengerType] = None,
    active_only: bool = True,
    params: Params = Depends(),
    db: Session = Depends(get_db),
) -> Page[ChatConnectionRead]:
    """List chat connections, newest activity first."""
    svc = ChatConnectionService(db)
    query = svc.get_connections_query(
        domain=domain, messenger_type=messenger_type, active_only=active_only
    )
    return paginate(query, params=params)


@router.delete("/{messenger_type}/{chat_id}", status_code=204)
def unlink_connection(
    messenger_type: MessengerType,
    chat_id: str,
    db: Session = Depends(get_db),
) -> None:
    """Explicitly unlink a chat; its next message binds it again."""
    if not IdentityResolver(db).deactivate(messenger_type, chat_id):
        raise HTTPException(status_code=404, detail="Connection not found")
