from donation_portal.schemas.common import APIModel, MessageResponse

__all__ = ["APIModel", "MessageResponse"]
