"""Connectors API: Open Lines connector activation per tenant."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.clients.bitrix import BitrixClient
from app.constants.messengers import MessengerType
from app.core.exceptions import ConnectorNotFound, CrmApiError
from app.db import get_db
from app.schemas.profile import ConnectorActivate, ConnectorRead
from app.services.connector_service import ConnectorService
from app.services.token_service import StoredTokenProvider

router = APIRouter(
    prefix="/tenants",
    tags=["connectors"],
    responses={404: {"description": "Not found"}},
)


def get_connector_service(db: Session = Depends(get_db)) -> ConnectorService:
    return ConnectorService(db, BitrixClient(StoredTokenProvider(db)))


@router.post(
    "/{domain}/connectors/{messenger_type}/activate",
    response_model=ConnectorRead,
)
def activate_connector(
    domain: str,
    messenger_type: MessengerType,
    data: ConnectorActivate,
    svc: ConnectorService = Depends(get_connector_service),
) -> ConnectorRead:
    """Register (once) and activate the connector on an open line."""
    try:
        return svc.activate(domain, messenger_type, data.line_id, name=data.name)
    except ConnectorNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    except CrmApiError as e:
        raise HTTPException(status_code=502, detail=e.message)


@router.delete("/{domain}/connectors/{messenger_type}", status_code=204)
def unregister_connector(
    domain: str,
    messenger_type: MessengerType,
    svc: ConnectorService = Depends(get_connector_service),
) -> None:
    try:
        found = svc.deactivate(domain, messenger_type)
    except CrmApiError as e:
        raise HTTPException(status_code=502, detail=e.message)
    if not found:
        raise HTTPException(status_code=404, detail="Connector not found")
