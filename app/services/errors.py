"""Ödeme → fatura hattının hata sınıfları. status_code, HTTP yanıtına doğrudan eşlenir."""


class PipelineError(Exception):
    status_code = 500
    message = "Unexpected pipeline error"

    def __init__(self, message: str | None = None, *, details: str | None = None):
        super().__init__(message or self.message)
        self.details = details

    @property
    def error(self) -> str:
        return str(self)


class ValidationError(PipelineError):
    """Eksik/hatalı istek alanı; otomatik tekrar denenmez."""

    status_code = 400
    message = "Invalid request"


class NotFoundError(PipelineError):
    status_code = 404
    message = "Not found"


class OrderNotFound(NotFoundError):
    message = "Order not found"

    def __init__(self, order_id: str, *, by_gateway_id: bool = False):
        what = "gateway order id" if by_gateway_id else "order id"
        super().__init__("Order not found", details=f"No order matches {what} {order_id!r}")
        self.order_id = order_id


class InvalidTransitionError(PipelineError):
    status_code = 409
    message = "Payment status transition not allowed"

    def __init__(self, old_status: str, new_status: str):
        super().__init__(
            f"Payment status cannot change from {old_status} to {new_status}",
        )
        self.old_status = old_status
        self.new_status = new_status


class OrderDataInvalidError(PipelineError):
    """Sipariş fatura için eksik; düzeltilip yeniden gönderilmeli, tekrar denenmez."""

    status_code = 422
    message = "Invalid order data"

    def __init__(self, order_id: str, problems: list[str]):
        super().__init__("Invalid order data", details="; ".join(problems))
        self.order_id = order_id
        self.problems = problems


class RenderError(PipelineError):
    message = "Invoice rendering failed"


class StoreError(PipelineError):
    message = "Database operation failed"


class GatewayError(PipelineError):
    """Ödeme sağlayıcısından 2xx dışı yanıt; ham hata metni teşhis için taşınır."""

    message = "Payment gateway error"

    def __init__(self, status_code: int, body: str = ""):
        super().__init__(f"Payment gateway error: {status_code}", details=body[:2000])
        self.status_code = status_code
        self.body = body
