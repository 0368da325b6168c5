"""
Driver assignment optimization schemas.
"""

from pydantic import BaseModel
from typing import List, Optional
from datetime import date, datetime

from backend.app.models.trip_enums import TripStatus


class OptimizationRequest(BaseModel):
    """Date range to optimize (inclusive)."""
    start_date: date
    end_date: date


class AssignmentProposalSchema(BaseModel):
    """A proposed driver and pickup time for one trip."""
    trip_id: str
    driver_id: str
    driver_name: str
    original_status: TripStatus
    original_time: datetime
    suggested_time: datetime
    trip_date: date
    reasoning: str
    time_difference: str

    class Config:
        from_attributes = True
        use_enum_values = True


class OptimizationRun(BaseModel):
    """An optimizer run held in the proposal store until applied or discarded."""
    run_id: str
    start_date: date
    end_date: date
    created_at: datetime
    created_by: Optional[str] = None
    trips_considered: int
    drivers_considered: int
    assignments: List[AssignmentProposalSchema]


class ProposalFailure(BaseModel):
    """A proposal that could not be written back."""
    trip_id: str
    driver_id: str
    kind: str
    error_code: str
    message: str


class ApplyResultResponse(BaseModel):
    """Outcome of applying a run; partial application is a normal result."""
    run_id: Optional[str] = None
    total: int
    applied_count: int
    message: str
    applied: List[AssignmentProposalSchema]
    failed: List[ProposalFailure]
    skipped: List[AssignmentProposalSchema]
    first_error: Optional[ProposalFailure] = None
