"""HMAC imza doğrulama ve admin secret karşılaştırması (timing-safe)."""
import hashlib
import hmac


def compute_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_signature(raw_body: bytes, signature: str | None, secret: str | None) -> bool:
    """Ham gövde üzerinden HMAC-SHA256 (hex) imzasını sabit sürede karşılaştırır."""
    if not signature or not secret:
        return False
    expected = compute_signature(raw_body, secret)
    return hmac.compare_digest(signature.strip().lower().encode("utf-8"), expected.encode("utf-8"))


def constant_time_equals(provided: str | None, expected: str | None) -> bool:
    """Timing-safe karşılaştırma; detay sızdırmaz."""
    p = (provided or "").encode("utf-8")
    e = (expected or "").encode("utf-8")
    if len(p) != len(e):
        # Sabit süre için aynı uzunlukta karşılaştır
        hmac.compare_digest(e, e)
        return False
    return hmac.compare_digest(p, e)
