from datetime import datetime
from typing import List, Optional

from pydantic import ConfigDict, Field, model_validator

from donation_portal.models import ProgramStatus
from donation_portal.schemas.common import APIModel


class CreateProgramRequest(APIModel):
    """Request schema for creating a program"""
    program_name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    target_amount: int = Field(0, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: ProgramStatus = ProgramStatus.ACTIVE

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "programName": "Clean Water for Villages",
                "description": "Borewells and filters for 20 villages",
                "targetAmount": 500000,
                "startDate": "2025-01-01T00:00:00Z",
                "endDate": "2025-12-31T00:00:00Z"
            }
        }
    )

    @model_validator(mode="after")
    def check_dates(self):
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self


class UpdateProgramRequest(APIModel):
    """Funds fields are not updatable here; see the funds endpoint"""
    program_name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1)
    target_amount: Optional[int] = Field(None, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Optional[ProgramStatus] = None


class UpdateFundsRequest(APIModel):
    amount: int = Field(..., ge=0, description="New total of funds utilized")


class ProgramResponse(APIModel):
    id: str
    program_name: str
    description: str
    target_amount: int
    funds_received: int
    funds_utilized: int
    utilization_rate: float
    start_date: datetime
    end_date: Optional[datetime]
    status: ProgramStatus
    created_at: datetime
    updated_at: datetime


class ProgramListResponse(APIModel):
    programs: List[ProgramResponse]
    total: int


class ProgramStats(APIModel):
    total_programs: int
    active_programs: int
    total_target: int
    total_received: int
    total_utilized: int
