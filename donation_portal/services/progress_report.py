"""
Progress-report job: email every donor a breakdown of the active programs
they have contributed to.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker
import structlog

from donation_portal.models import Donation, Program, ProgramStatus, TransactionStatus, User
from donation_portal.schemas.scheduler import DonorReportResult, ReportRunResponse
from donation_portal.services.email import EmailService

logger = structlog.get_logger(__name__)

STATUS_COMPLETED = "completed"
STATUS_SKIPPED = "skipped"
STATUS_ERROR = "error"


@dataclass
class ReportRunResult:
    status: str
    message: str
    sent_count: int = 0
    failed_count: int = 0
    total_donors: int = 0
    active_programs: int = 0
    results: List[DonorReportResult] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status != STATUS_ERROR

    def to_response(self) -> ReportRunResponse:
        return ReportRunResponse(
            success=self.success,
            status=self.status,
            message=self.message,
            sent_count=self.sent_count,
            failed_count=self.failed_count,
            total_donors=self.total_donors,
            active_programs=self.active_programs,
            results=self.results,
            error=self.error,
        )


def aggregate_contributions(donations: Iterable[Tuple[str, str, int]]) -> Dict[str, Dict[str, int]]:
    """(user_id, program_id, amount) rows -> {user_id: {program_id: total}}"""
    totals: Dict[str, Dict[str, int]] = {}
    for user_id, program_id, amount in donations:
        per_program = totals.setdefault(user_id, {})
        per_program[program_id] = per_program.get(program_id, 0) + amount
    return totals


def program_breakdown(program: Program, contribution: int) -> Dict:
    target = program.target_amount or 0
    received = program.funds_received or 0
    utilized = program.funds_utilized or 0

    progress = min(received / target * 100, 100) if target > 0 else 0
    utilization = utilized / received * 100 if received > 0 else 0

    return {
        "programName": program.program_name,
        "description": program.description,
        "targetAmount": target,
        "fundsReceived": received,
        "fundsUtilized": utilized,
        "remaining": max(target - received, 0),
        "progressPercentage": round(progress, 1),
        "utilizationRate": round(utilization, 1),
        "donorContribution": contribution,
        "startDate": program.start_date,
        "endDate": program.end_date,
        "status": program.status.value,
    }


class ProgressReportJob:
    """Read, aggregate, notify. Individual donor failures never stop the batch."""

    def __init__(self, session_factory: async_sessionmaker, emails: EmailService):
        self.session_factory = session_factory
        self.emails = emails

    async def run(self) -> ReportRunResult:
        logger.info("Progress report job started")
        async with self.session_factory() as db:
            try:
                result = await db.execute(select(Program).where(Program.status == ProgramStatus.ACTIVE))
                programs = {program.id: program for program in result.scalars().all()}

                if not programs:
                    logger.info("Progress report job skipped: no active programs")
                    return ReportRunResult(status=STATUS_SKIPPED, message="No active programs found")

                rows = await db.execute(
                    select(Donation.user_id, Donation.program_id, Donation.amount).where(
                        Donation.transaction_status == TransactionStatus.COMPLETED,
                        Donation.program_id.in_(list(programs)),
                    )
                )
                contributions = aggregate_contributions(rows.all())
                summaries = {program_id: program_breakdown(program, 0) for program_id, program in programs.items()}
            except Exception as e:
                logger.error("Progress report job failed", error=str(e), error_type=type(e).__name__)
                return ReportRunResult(status=STATUS_ERROR, message="Failed to send progress reports", error=str(e))

            run = ReportRunResult(
                status=STATUS_COMPLETED,
                message="",
                total_donors=len(contributions),
                active_programs=len(programs),
            )

            for user_id, per_program in contributions.items():
                outcome = await self._notify_donor(db, user_id, per_program, summaries)
                run.results.append(outcome)
                if outcome.status == "sent":
                    run.sent_count += 1
                else:
                    run.failed_count += 1

        run.message = f"Progress reports sent to {run.sent_count} donor(s), {run.failed_count} failed"
        logger.info(
            "Progress report job finished",
            sent=run.sent_count,
            failed=run.failed_count,
            donors=run.total_donors,
            active_programs=run.active_programs,
        )
        return run

    async def _notify_donor(self, db, user_id: str, per_program: Dict[str, int], summaries: Dict[str, Dict]):
        try:
            user = await db.get(User, user_id)
            if not user or not user.email:
                logger.warning("Progress report skipped: donor not found", user_id=user_id)
                return DonorReportResult(user_id=user_id, email=None, status="failed", error="Donor not found")

            breakdown = [
                {**summaries[program_id], "donorContribution": amount}
                for program_id, amount in per_program.items()
            ]
            sent = await self.emails.send_progress_report(db, user, breakdown)
        except Exception as e:
            await db.rollback()
            logger.error("Progress report failed for donor", user_id=user_id, error=str(e))
            return DonorReportResult(user_id=user_id, email=None, status="failed", error=str(e))

        if sent.success:
            return DonorReportResult(user_id=user_id, email=user.email, status="sent")
        return DonorReportResult(user_id=user_id, email=user.email, status="failed", error=sent.error)
