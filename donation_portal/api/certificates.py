from typing import Dict, List

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from donation_portal.api.deps import ensure_valid_id, get_certificate_service
from donation_portal.core.errors import AuthorizationError, NotFoundError
from donation_portal.core.security import get_current_user
from donation_portal.database.database import get_db
from donation_portal.models import UserRole
from donation_portal.schemas.certificate import CertificateResponse
from donation_portal.services.certificate import CertificateService
from donation_portal.services.donation import DonationService

router = APIRouter(prefix="/api/certificates", tags=["certificates"])
files_router = APIRouter(tags=["certificates"])


def _pdf_response(certificates: CertificateService, filename: str) -> FileResponse:
    path = certificates.resolve_file(filename)
    return FileResponse(path, media_type="application/pdf", filename=filename)


@router.get("/donation/{donation_id}", response_model=List[CertificateResponse])
async def get_donation_certificates(
    donation_id: str,
    user: Dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Certificates issued for a donation; visible to its donor and to admins"""
    donation = await DonationService.get_donation(db, ensure_valid_id(donation_id))
    if donation.user_id != user["userId"] and user.get("role") != UserRole.ADMIN.value:
        raise AuthorizationError()

    issued = await CertificateService.list_for_donation(db, donation.id)
    if not issued:
        raise NotFoundError("Certificates")

    return [
        CertificateResponse(
            certificate_type=certificate.certificate_type,
            certificate_url=certificate.certificate_url,
            issued_date=certificate.issued_at,
        )
        for certificate in issued
    ]


@router.get("/download/{filename}")
async def download_certificate(
    filename: str,
    certificates: CertificateService = Depends(get_certificate_service),
):
    return _pdf_response(certificates, filename)


@files_router.get("/certificates/{filename}")
async def serve_certificate(
    filename: str,
    certificates: CertificateService = Depends(get_certificate_service),
):
    """Static certificate links stored on Certificate.certificate_url"""
    return _pdf_response(certificates, filename)
