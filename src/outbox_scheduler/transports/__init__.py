from .protocol import DeliveryTransport
from .smtp import SmtpTransport

__all__ = ["DeliveryTransport", "SmtpTransport"]
