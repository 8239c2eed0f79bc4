from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from donation_portal.core.errors import NotFoundError, ValidationError
from donation_portal.models import Program, ProgramStatus, Report
from donation_portal.schemas.program import ProgramResponse
from donation_portal.schemas.report import CreateReportRequest, ReportResponse
from donation_portal.services.program import ProgramService

logger = structlog.get_logger(__name__)


def _to_response(report: Report, program_name: Optional[str]) -> ReportResponse:
    return ReportResponse(
        id=report.id,
        program_id=report.program_id,
        program_name=program_name,
        funds_received=report.funds_received,
        funds_utilized=report.funds_utilized,
        utilization_rate=report.utilization_rate,
        report_file_url=report.report_file_url,
        last_updated=report.last_updated,
    )


class ReportService:
    """Published transparency reports and the public transparency views"""

    @staticmethod
    async def create_report(db: AsyncSession, data: CreateReportRequest) -> ReportResponse:
        program = await ProgramService.get_program(db, data.program_id)
        if data.funds_utilized > data.funds_received:
            raise ValidationError("Funds utilized cannot exceed funds received")

        report = Report(
            program_id=program.id,
            funds_received=data.funds_received,
            funds_utilized=data.funds_utilized,
            report_file_url=data.report_file_url,
        )
        db.add(report)
        await db.commit()
        await db.refresh(report)

        logger.info("Transparency report published", report_id=report.id, program_id=program.id)
        return _to_response(report, program.program_name)

    @staticmethod
    async def list_reports(db: AsyncSession) -> List[ReportResponse]:
        result = await db.execute(
            select(Report, Program.program_name)
            .outerjoin(Program, Program.id == Report.program_id)
            .order_by(Report.last_updated.desc())
        )
        return [_to_response(report, name) for report, name in result.all()]

    @staticmethod
    async def latest_for_program(db: AsyncSession, program_id: str) -> ReportResponse:
        result = await db.execute(
            select(Report, Program.program_name)
            .outerjoin(Program, Program.id == Report.program_id)
            .where(Report.program_id == program_id)
            .order_by(Report.last_updated.desc())
            .limit(1)
        )
        row = result.first()
        if not row:
            raise NotFoundError("Report")
        report, name = row
        return _to_response(report, name)

    @staticmethod
    async def transparency_programs(db: AsyncSession) -> List[ProgramResponse]:
        """Active programs with their live fund ledger"""
        programs = await ProgramService.list_programs(db, status=ProgramStatus.ACTIVE)
        return [ProgramService.to_response(program) for program in programs]
