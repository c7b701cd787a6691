"""
Logging configuration.
Uygulama logger'ları "servenow.*" altında; fatura içeriği loglanmaz, yalnızca boyutu.
"""
import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# PDF motoru font/CSS uyarılarıyla log'u boğmasın
_NOISY_LOGGERS = ("weasyprint", "fontTools", "sqlalchemy.engine")


def setup_logging(
    level: int | str = logging.INFO,
    format_string: str | None = None,
) -> None:
    logging.basicConfig(
        level=level,
        format=format_string or LOG_FORMAT,
        stream=sys.stdout,
        force=True,
    )
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "servenow"):
        logging.getLogger(name).setLevel(level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
