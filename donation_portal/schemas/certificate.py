from datetime import datetime

from pydantic import Field

from donation_portal.models import CertificateType
from donation_portal.schemas.common import APIModel


class CertificateResponse(APIModel):
    certificate_type: CertificateType
    certificate_url: str = Field(..., alias="certificateURL")
    issued_date: datetime
