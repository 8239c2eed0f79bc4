from datetime import datetime
from typing import List, Optional

from pydantic import Field, model_validator

from donation_portal.schemas.common import APIModel


class CreateReportRequest(APIModel):
    program_id: str = Field(..., min_length=1)
    funds_received: int = Field(..., ge=0)
    funds_utilized: int = Field(..., ge=0)
    report_file_url: Optional[str] = Field(None, alias="reportFileURL", max_length=500)

    @model_validator(mode="after")
    def check_utilization(self):
        if self.funds_utilized > self.funds_received:
            raise ValueError("Funds utilized cannot exceed funds received")
        return self


class ReportResponse(APIModel):
    id: str
    program_id: str
    program_name: Optional[str]
    funds_received: int
    funds_utilized: int
    utilization_rate: float
    report_file_url: Optional[str] = Field(None, alias="reportFileURL")
    last_updated: datetime


class ReportListResponse(APIModel):
    reports: List[ReportResponse]
    total: int
