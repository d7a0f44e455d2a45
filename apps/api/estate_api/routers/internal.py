"""
Internal endpoints for scheduled/cron operations.

Protected by a bearer token (service role key or cron secret).
Call from an external scheduler.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from estate_api.core.config import Settings, get_settings
from estate_api.core.deps import get_db, verify_lifecycle_token
from estate_api.db.types import utcnow
from estate_api.schemas.lifecycle import LifecycleRunResponse
from estate_api.services import lifecycle_service

router = APIRouter(
    prefix="/internal/scheduled",
    tags=["internal"],
    dependencies=[Depends(verify_lifecycle_token)],
)
logger = logging.getLogger(__name__)


@router.post("/account-lifecycle", response_model=LifecycleRunResponse)
def run_account_lifecycle(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Expire trials, archive accounts past their grace period and queue
    card expiry warnings.

    Per-organization failures are reported in results.errors with a 200.
    An unexpected failure returns 500 with whatever results accumulated.
    """
    now = utcnow()
    results = lifecycle_service.new_results()
    try:
        lifecycle_service.run_account_lifecycle(db, now, results, config=settings)
    except Exception as e:
        logger.exception("Account lifecycle run failed")
        return JSONResponse(
            status_code=500,
            content=jsonable_encoder({"error": str(e), "results": results}),
        )

    return {"success": True, "timestamp": now, "results": results}
