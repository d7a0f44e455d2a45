"""Pydantic schemas for the buyer/seller pipeline and sequence actions."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from estate_api.db.enums import ProfileType, SequenceAction


class SequenceManageRequest(BaseModel):
    """Start, pause or stop the email sequence of one profile."""

    model_config = ConfigDict(populate_by_name=True)

    profile_id: UUID = Field(..., alias="profileId")
    profile_type: ProfileType = Field(..., alias="profileType")
    action: SequenceAction
    sequence_id: UUID | None = Field(default=None, alias="sequenceId")


class SequenceManageResponse(BaseModel):
    success: bool = True
    action: SequenceAction


class StageChangeRequest(BaseModel):
    stage: str = Field(..., min_length=1, max_length=30)


class StageChangeResponse(BaseModel):
    """Stage after the change plus active sequences triggered by it (not enrolled)."""

    success: bool = True
    stage: str
    matching_sequence_ids: list[UUID] = []
