from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from donation_portal.api.deps import ensure_valid_id
from donation_portal.core.security import require_admin
from donation_portal.database.database import get_db
from donation_portal.schemas.program import ProgramListResponse
from donation_portal.schemas.report import CreateReportRequest, ReportListResponse, ReportResponse
from donation_portal.services.report import ReportService

router = APIRouter(prefix="/api/reports", tags=["reports"])
transparency_router = APIRouter(prefix="/api/transparency", tags=["transparency"])


@router.post("", response_model=ReportResponse, status_code=201, dependencies=[Depends(require_admin)])
async def create_report(data: CreateReportRequest, db: AsyncSession = Depends(get_db)):
    """Publish a utilization report for a program"""
    return await ReportService.create_report(db, data)


@router.get("", response_model=ReportListResponse)
async def list_reports(db: AsyncSession = Depends(get_db)):
    reports = await ReportService.list_reports(db)
    return ReportListResponse(reports=reports, total=len(reports))


@router.get("/program/{program_id}", response_model=ReportResponse)
async def get_program_report(program_id: str, db: AsyncSession = Depends(get_db)):
    """Latest report published for the program"""
    return await ReportService.latest_for_program(db, ensure_valid_id(program_id))


@transparency_router.get("/programs", response_model=ProgramListResponse)
async def transparency_programs(db: AsyncSession = Depends(get_db)):
    programs = await ReportService.transparency_programs(db)
    return ProgramListResponse(programs=programs, total=len(programs))


@transparency_router.get("/reports", response_model=ReportListResponse)
async def transparency_reports(db: AsyncSession = Depends(get_db)):
    reports = await ReportService.list_reports(db)
    return ReportListResponse(reports=reports, total=len(reports))
