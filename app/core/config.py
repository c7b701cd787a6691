from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

# .env proje kökünde: app/core/config.py -> app/core -> app -> proje kökü
_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _ROOT / ".env"

CASHFREE_BASE_URLS = {
    "production": "https://api.cashfree.com",
    "sandbox": "https://sandbox.cashfree.com",
}


class Settings(BaseSettings):
    database_url: str = "sqlite:///./servenow.db"
    environment: str = "development"   # production: hata detayları yanıtlara eklenmez
    # CORS: virgülle ayrılmış origin listesi
    cors_origins: str = "*"
    rate_limit_per_minute: int = 60
    webhook_rate_limit_per_minute: int = 120
    # Manuel durum güncelleme ve toplu fatura işi için (X-Admin-Secret)
    admin_secret: str = ""
    # Cashfree webhook imzası (HMAC-SHA256, hex)
    webhook_secret: str = ""
    webhook_signature_required: bool = True
    # Cashfree PG: ödeme durumu sorgulama (verify-payment)
    cashfree_client_id: str = ""
    cashfree_client_secret: str = ""
    cashfree_environment: str = "sandbox"  # sandbox | production
    cashfree_api_version: str = "2022-09-01"
    gateway_timeout_seconds: float = 10.0
    # Fatura
    invoice_pdf_enabled: bool = True       # False: doğrudan HTML yedek şablon
    invoice_page_format: str = "A4"
    invoice_gst_rate: float = 5.0          # Toplam GST yüzdesi (CGST + SGST)
    invoice_currency_label: str = "Rs."
    invoice_brand_name: str = "ServeNowPay"
    invoice_job_retry_delay_ms: int = 1000

    model_config = {
        "env_file": _ENV_FILE if _ENV_FILE.is_file() else ".env",
        "extra": "ignore",
    }

    @field_validator("webhook_secret", "admin_secret", "cashfree_client_id", "cashfree_client_secret", mode="before")
    @classmethod
    def strip_secret(cls, v: str | None) -> str:
        """Kopyala-yapıştır kaynaklı boşlukları temizler."""
        return (v or "").strip()

    @field_validator("cashfree_environment", mode="before")
    @classmethod
    def normalize_gateway_env(cls, v: str | None) -> str:
        v = (v or "").strip().lower()
        return v if v in CASHFREE_BASE_URLS else "sandbox"

    @property
    def is_production(self) -> bool:
        return (self.environment or "").strip().lower() == "production"

    @property
    def expose_error_details(self) -> bool:
        return not self.is_production

    @property
    def cashfree_base_url(self) -> str:
        return CASHFREE_BASE_URLS[self.cashfree_environment]


settings = Settings()


def is_gateway_configured() -> bool:
    """Cashfree kimlik bilgileri tanımlı mı?"""
    return bool(settings.cashfree_client_id and settings.cashfree_client_secret)
