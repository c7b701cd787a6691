from .invoice import (
    CustomerInvoiceRequest,
    GenerateInvoiceRequest,
    InvoiceJobItem,
    InvoiceJobRequest,
    InvoiceJobResult,
    InvoiceJobStatus,
    PendingInvoices,
)
from .payment import (
    BatchUpdateItem,
    BatchUpdateRequest,
    BatchUpdateResult,
    PaymentStatusResult,
    PaymentStatusUpdateRequest,
    PaymentVerification,
    PendingInvoiceOrder,
    VerifyPaymentRequest,
)

__all__ = [
    "BatchUpdateItem",
    "BatchUpdateRequest",
    "BatchUpdateResult",
    "CustomerInvoiceRequest",
    "GenerateInvoiceRequest",
    "InvoiceJobItem",
    "InvoiceJobRequest",
    "InvoiceJobResult",
    "InvoiceJobStatus",
    "PaymentStatusResult",
    "PaymentStatusUpdateRequest",
    "PaymentVerification",
    "PendingInvoiceOrder",
    "PendingInvoices",
    "VerifyPaymentRequest",
]
