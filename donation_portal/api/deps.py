"""
Shared router dependencies: application services and path parameter checks
"""
import uuid

from fastapi import Request

from donation_portal.core.errors import InvalidIdentifierError
from donation_portal.services.certificate import CertificateService
from donation_portal.services.payment import PaymentService
from donation_portal.services.scheduler import SchedulerService


def get_payment_service(request: Request) -> PaymentService:
    return request.app.state.payments


def get_certificate_service(request: Request) -> CertificateService:
    return request.app.state.certificates


def get_scheduler(request: Request) -> SchedulerService:
    return request.app.state.scheduler


def ensure_valid_id(value: str) -> str:
    try:
        uuid.UUID(value)
    except ValueError:
        raise InvalidIdentifierError()
    return value

