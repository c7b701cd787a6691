from ._time import utcnow
from .error_log import ErrorLog
from .invoice import Invoice
from .order import PAYMENT_STATUSES, Order
from .payment_log import InvoiceGenerationFailure, PaymentStatusLog
from .restaurant import Restaurant

__all__ = [
    "ErrorLog",
    "Invoice",
    "InvoiceGenerationFailure",
    "Order",
    "PAYMENT_STATUSES",
    "PaymentStatusLog",
    "Restaurant",
    "utcnow",
]
