from datetime import datetime, timezone


def utcnow() -> datetime:
    """UTC şimdi (naive; veritabanıyla uyumlu)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
