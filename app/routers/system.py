from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.adapters.registry import get_adapter_registry
from app.config import get_settings
from app.db import get_db

router = APIRouter(
    tags=["system"],
)


@router.get("/health")
def health(db: Session = Depends(get_db)) -> dict:
    """Liveness plus a database round trip."""
    s = get_settings()
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError:
        database = "unavailable"
    return {
        "status": "ok" if database == "ok" else "degraded",
        "app": s.app_name,
        "environment": s.environment,
        "database": database,
        "messengers": [str(t) for t in get_adapter_registry().list_types()],
    }
