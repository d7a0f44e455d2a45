"""CRM router - buyer/seller pipeline stages and sequence actions."""

from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from estate_api.core.config import Settings, get_settings
from estate_api.core.deps import get_db
from estate_api.db.enums import ProfileType
from estate_api.schemas.crm import (
    SequenceManageRequest,
    SequenceManageResponse,
    StageChangeRequest,
    StageChangeResponse,
)
from estate_api.services import crm_profile_service, sequence_service

router = APIRouter(prefix="/crm", tags=["crm"])


@router.post("/sequences/manage", response_model=SequenceManageResponse)
def manage_profile_sequence(
    data: SequenceManageRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Start, pause or stop the email sequence of a buyer or seller."""
    try:
        sequence_service.manage_sequence(
            db,
            profile_type=data.profile_type,
            profile_id=data.profile_id,
            action=data.action,
            sequence_id=data.sequence_id,
            config=settings,
        )
    except ValueError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})

    return SequenceManageResponse(action=data.action)


@router.patch("/{profile_type}/{profile_id}/stage", response_model=StageChangeResponse)
def change_profile_stage(
    profile_type: ProfileType,
    profile_id: UUID,
    data: StageChangeRequest,
    db: Session = Depends(get_db),
):
    """
    Move a profile to a new pipeline stage.

    Sequences triggered by the new stage are returned, not enrolled; the
    client starts one through /crm/sequences/manage.
    """
    try:
        profile = crm_profile_service.change_stage(db, profile_type, profile_id, data.stage)
    except ValueError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})

    sequences = crm_profile_service.find_trigger_sequences(
        db, profile.organization_id, profile_type, profile.stage
    )
    return StageChangeResponse(
        stage=profile.stage,
        matching_sequence_ids=[s.id for s in sequences],
    )
