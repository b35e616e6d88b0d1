"""Health check endpoint."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.core.logging import get_logger
from src.db.database import get_db

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health")
def health_check(request: Request, db: Session = Depends(get_db)) -> dict[str, str]:
    """Return database connectivity and evolution module state."""
    modules = getattr(request.app.state, "module_manager", None)
    evolution = "enabled" if modules and modules.is_enabled("evolution") else "disabled"
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Health check database probe failed")
        return {"status": "error", "database": "disconnected", "evolution": evolution}
    return {"status": "ok", "database": "connected", "evolution": evolution}
