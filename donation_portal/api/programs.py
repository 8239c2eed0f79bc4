from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from donation_portal.api.deps import ensure_valid_id
from donation_portal.core.security import require_admin
from donation_portal.database.database import get_db
from donation_portal.models import ProgramStatus
from donation_portal.schemas.program import (
    CreateProgramRequest,
    ProgramListResponse,
    ProgramResponse,
    UpdateFundsRequest,
    UpdateProgramRequest,
)
from donation_portal.services.program import ProgramService

router = APIRouter(prefix="/api/programs", tags=["programs"])


@router.get("", response_model=ProgramListResponse)
async def list_programs(
    status: Optional[ProgramStatus] = Query(None, description="Filter by program status"),
    db: AsyncSession = Depends(get_db),
):
    """All programs with their fund ledger"""
    programs = await ProgramService.list_programs(db, status=status)
    return ProgramListResponse(
        programs=[ProgramService.to_response(program) for program in programs],
        total=len(programs),
    )


@router.get("/{program_id}", response_model=ProgramResponse)
async def get_program(program_id: str, db: AsyncSession = Depends(get_db)):
    program = await ProgramService.get_program(db, ensure_valid_id(program_id))
    return ProgramService.to_response(program)


@router.post("", response_model=ProgramResponse, status_code=201, dependencies=[Depends(require_admin)])
async def create_program(data: CreateProgramRequest, db: AsyncSession = Depends(get_db)):
    program = await ProgramService.create_program(db, data)
    return ProgramService.to_response(program)


@router.put("/{program_id}", response_model=ProgramResponse, dependencies=[Depends(require_admin)])
async def update_program(program_id: str, data: UpdateProgramRequest, db: AsyncSession = Depends(get_db)):
    """Edit program details; the fund ledger is not writable through this route"""
    program = await ProgramService.update_program(db, ensure_valid_id(program_id), data)
    return ProgramService.to_response(program)


@router.delete("/{program_id}", response_model=ProgramResponse, dependencies=[Depends(require_admin)])
async def archive_program(program_id: str, db: AsyncSession = Depends(get_db)):
    """Programs are archived rather than deleted so donation history keeps its references"""
    program = await ProgramService.archive_program(db, ensure_valid_id(program_id))
    return ProgramService.to_response(program)


@router.put("/{program_id}/funds", response_model=ProgramResponse, dependencies=[Depends(require_admin)])
async def update_funds_utilized(program_id: str, data: UpdateFundsRequest, db: AsyncSession = Depends(get_db)):
    program = await ProgramService.set_funds_utilized(db, ensure_valid_id(program_id), data.amount)
    return ProgramService.to_response(program)
