"""IP bazlı rate limiting (SlowAPI); proxy (X-Forwarded-For) destekli."""
from fastapi import Request
from slowapi import Limiter


def client_ip(request: Request) -> str:
    """Proxy arkasında gerçek istemci IP; ödeme sağlayıcısı webhook'ları da bu anahtarla sınırlanır."""
    xff = request.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "127.0.0.1"


limiter = Limiter(key_func=client_ip)
