"""
Shared helpers for service-layer persistence calls
"""
from typing import Any, Callable, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import structlog

from campaign_hub.core.circuit_breaker import db_circuit_breaker, CircuitBreakerError
from campaign_hub.core.errors import CampaignHubError, InternalError, NotFoundError
from campaign_hub.middleware.metrics import db_operations_total
from campaign_hub.models.campaign import Campaign

logger = structlog.get_logger(__name__)


async def guarded(db: Session, operation: str, func: Callable[[], Any], table: str = "campaigns", **context) -> Any:
    """
    Run ``func`` through the database circuit breaker.

    Domain errors pass through untouched. Persistence failures are rolled
    back, logged, and surfaced as a generic ``InternalError``.
    """
    try:
        result = await db_circuit_breaker.call(func)
        db_operations_total.labels(operation=operation, table=table, status="success").inc()
        return result
    except CircuitBreakerError:
        logger.warning("Circuit breaker open, service temporarily unavailable", operation=operation, **context)
        raise InternalError("Service temporarily unavailable")
    except CampaignHubError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        db_operations_total.labels(operation=operation, table=table, status="error").inc()
        logger.error(f"Failed to {operation}", error=str(e), **context)
        raise InternalError(f"Failed to {operation}")


def resolve_campaign(db: Session, id_or_slug: str) -> Optional[Campaign]:
    """Look a campaign up by opaque ID, falling back to its slug"""
    campaign = db.query(Campaign).filter(Campaign.id == id_or_slug).first()
    if campaign is None:
        campaign = db.query(Campaign).filter(Campaign.slug == id_or_slug).first()
    return campaign


async def require_campaign(db: Session, id_or_slug: str) -> Campaign:
    """Resolve a campaign or raise ``NotFoundError``"""
    campaign = await guarded(db, "fetch campaign", lambda: resolve_campaign(db, id_or_slug), campaign_id=id_or_slug)
    if campaign is None:
        logger.warning("Campaign not found", campaign_id=id_or_slug)
        raise NotFoundError("Campaign not found")
    return campaign
