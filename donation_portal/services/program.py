from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from donation_portal.core.errors import ConflictError, NotFoundError, ValidationError
from donation_portal.models import Program, ProgramStatus
from donation_portal.models.base import as_utc
from donation_portal.schemas.program import (
    CreateProgramRequest,
    ProgramResponse,
    ProgramStats,
    UpdateProgramRequest,
)

logger = structlog.get_logger(__name__)


class ProgramService:
    """Program catalog and the fund ledger kept on each program"""

    @staticmethod
    def to_response(program: Program) -> ProgramResponse:
        return ProgramResponse.model_validate(program)

    @staticmethod
    async def get_program(db: AsyncSession, program_id: str) -> Program:
        program = await db.get(Program, program_id)
        if not program:
            raise NotFoundError("Program")
        return program

    @staticmethod
    async def _name_taken(db: AsyncSession, name: str, exclude_id: Optional[str] = None) -> bool:
        query = select(Program.id).where(Program.program_name == name)
        if exclude_id:
            query = query.where(Program.id != exclude_id)
        result = await db.execute(query)
        return result.first() is not None

    @staticmethod
    async def create_program(db: AsyncSession, data: CreateProgramRequest) -> Program:
        if await ProgramService._name_taken(db, data.program_name):
            raise ConflictError("A program with this name already exists")

        program = Program(
            program_name=data.program_name,
            description=data.description,
            target_amount=data.target_amount,
            funds_received=0,
            funds_utilized=0,
            status=data.status,
        )
        if data.start_date:
            program.start_date = data.start_date
        if data.end_date:
            program.end_date = data.end_date

        db.add(program)
        await db.commit()
        await db.refresh(program)

        logger.info("Program created", program_id=program.id, name=program.program_name)
        return program

    @staticmethod
    async def list_programs(db: AsyncSession, status: Optional[ProgramStatus] = None) -> List[Program]:
        query = select(Program)
        if status:
            query = query.where(Program.status == status)
        query = query.order_by(Program.created_at.desc())
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def update_program(db: AsyncSession, program_id: str, data: UpdateProgramRequest) -> Program:
        program = await ProgramService.get_program(db, program_id)
        changes = data.model_dump(exclude_unset=True)

        if program.status == ProgramStatus.ARCHIVED and changes.get("status") not in (None, ProgramStatus.ARCHIVED):
            raise ValidationError("Archived programs cannot be reactivated")

        if changes.get("program_name") and changes["program_name"] != program.program_name:
            if await ProgramService._name_taken(db, changes["program_name"], exclude_id=program_id):
                raise ConflictError("A program with this name already exists")

        start = as_utc(changes.get("start_date", program.start_date))
        end = as_utc(changes.get("end_date", program.end_date))
        if start and end and end <= start:
            raise ValidationError(
                "End date must be after start date",
                fields=[{"field": "endDate", "message": "End date must be after start date"}],
            )

        for field, value in changes.items():
            if value is not None:
                setattr(program, field, value)

        await db.commit()
        await db.refresh(program)

        logger.info("Program updated", program_id=program_id, fields=sorted(changes))
        return program

    @staticmethod
    async def archive_program(db: AsyncSession, program_id: str) -> Program:
        """Move a program to the terminal archived state"""
        program = await ProgramService.get_program(db, program_id)
        program.status = ProgramStatus.ARCHIVED
        await db.commit()
        await db.refresh(program)

        logger.info("Program archived", program_id=program_id)
        return program

    @staticmethod
    async def set_funds_utilized(db: AsyncSession, program_id: str, amount: int) -> Program:
        """Set (not increment) funds utilized; must stay within funds received"""
        if amount < 0:
            raise ValidationError("Funds utilized cannot be negative")

        program = await ProgramService.get_program(db, program_id)
        if amount > program.funds_received:
            logger.warning(
                "Rejected funds utilized update",
                program_id=program_id,
                requested=amount,
                funds_received=program.funds_received,
            )
            raise ValidationError(
                "Funds utilized cannot exceed funds received",
                fields=[{"field": "amount", "message": f"Must be at most {program.funds_received}"}],
            )

        # Re-checked against the current row
        result = await db.execute(
            update(Program)
            .where(Program.id == program_id, Program.funds_received >= amount)
            .values(funds_utilized=amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            raise ValidationError("Funds utilized cannot exceed funds received")

        await db.commit()
        await db.refresh(program)

        logger.info("Funds utilized updated", program_id=program_id, funds_utilized=amount)
        return program

    @staticmethod
    async def increment_funds_received(db: AsyncSession, program_id: str, amount: int) -> bool:
        """
        Atomically add `amount` to the program's funds received.

        Does not commit; the caller owns the transaction. Returns False when
        the program no longer exists.
        """
        result = await db.execute(
            update(Program)
            .where(Program.id == program_id)
            .values(funds_received=Program.funds_received + amount)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    async def get_stats(db: AsyncSession) -> ProgramStats:
        result = await db.execute(
            select(
                func.count(Program.id),
                func.coalesce(func.sum(Program.target_amount), 0),
                func.coalesce(func.sum(Program.funds_received), 0),
                func.coalesce(func.sum(Program.funds_utilized), 0),
            )
        )
        total, target, received, utilized = result.one()

        active = await db.execute(
            select(func.count(Program.id)).where(Program.status == ProgramStatus.ACTIVE)
        )

        return ProgramStats(
            total_programs=total,
            active_programs=active.scalar_one(),
            total_target=int(target),
            total_received=int(received),
            total_utilized=int(utilized),
        )
