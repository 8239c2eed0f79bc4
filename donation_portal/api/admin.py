"""
Admin console: donation oversight and control of the progress-report scheduler
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from donation_portal.api.deps import get_scheduler
from donation_portal.core.security import require_admin
from donation_portal.database.database import get_db
from donation_portal.models import TransactionStatus
from donation_portal.schemas.auth import DonorListResponse
from donation_portal.schemas.donation import AdminDashboard, AdminDonationListResponse
from donation_portal.schemas.scheduler import (
    ReportRunResponse,
    ScheduleConfigUpdate,
    SchedulerControlResponse,
    SchedulerOptions,
    SchedulerStatus,
)
from donation_portal.services.donation import DonationService
from donation_portal.services.program import ProgramService
from donation_portal.services.schedule import describe
from donation_portal.services.scheduler import SchedulerService

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])
logger = structlog.get_logger(__name__)


# ============================================================================
# Donations
# ============================================================================

@router.get("/dashboard", response_model=AdminDashboard)
async def get_dashboard(db: AsyncSession = Depends(get_db)):
    donations = await DonationService.get_stats(db)
    programs = await ProgramService.get_stats(db)
    return AdminDashboard(donations=donations, programs=programs)


@router.get("/donations", response_model=AdminDonationListResponse)
async def list_donations(
    program_id: Optional[str] = Query(None, alias="programId"),
    status: Optional[TransactionStatus] = Query(None),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
):
    """Every donation, newest first, with optional filters"""
    donations = await DonationService.list_all(
        db,
        program_id=program_id,
        status=status,
        start_date=start_date,
        end_date=end_date,
    )
    return AdminDonationListResponse(donations=donations, total=len(donations))


@router.get("/donors", response_model=DonorListResponse)
async def list_donors(db: AsyncSession = Depends(get_db)):
    donors = await DonationService.list_donors(db)
    return DonorListResponse(donors=donors, total=len(donors))


# ============================================================================
# Progress report scheduler
# ============================================================================

@router.get("/scheduler/status", response_model=SchedulerStatus)
async def get_scheduler_status(scheduler: SchedulerService = Depends(get_scheduler)):
    return scheduler.status()


@router.get("/scheduler/options", response_model=SchedulerOptions)
async def get_scheduler_options():
    return SchedulerService.options()


@router.put("/scheduler/config", response_model=SchedulerControlResponse)
async def update_scheduler_config(
    data: ScheduleConfigUpdate,
    scheduler: SchedulerService = Depends(get_scheduler),
):
    """
    Merge a partial schedule and rebuild the timer.

    Every invalid field is reported together. Valid fields sent alongside an
    invalid one are not applied; the previous schedule stays in force.
    """
    status = await scheduler.update_config(data.model_dump(exclude_unset=True))
    return SchedulerControlResponse(message=f"Schedule updated: {describe(scheduler.config)}", status=status)


@router.post("/scheduler/trigger", response_model=ReportRunResponse)
async def trigger_progress_reports(scheduler: SchedulerService = Depends(get_scheduler)):
    """Run the progress-report job now, regardless of schedule or enabled flag"""
    result = await scheduler.trigger()
    logger.info("Progress reports triggered manually", status=result.status, sent=result.sent_count)
    return result.to_response()


@router.post("/scheduler/enable", response_model=SchedulerControlResponse)
async def enable_scheduler(scheduler: SchedulerService = Depends(get_scheduler)):
    scheduler.enable()
    return SchedulerControlResponse(message="Email scheduler enabled", status=scheduler.status())


@router.post("/scheduler/disable", response_model=SchedulerControlResponse)
async def disable_scheduler(scheduler: SchedulerService = Depends(get_scheduler)):
    scheduler.disable()
    return SchedulerControlResponse(message="Email scheduler disabled", status=scheduler.status())
