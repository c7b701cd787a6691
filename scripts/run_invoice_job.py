#!/usr/bin/env python3
"""Toplu fatura işini komut satırından çalıştırır (dış cron için). Proje kökünden: python3 scripts/run_invoice_job.py --batch-size 10"""
import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from dotenv import load_dotenv  # noqa: E402

load_dotenv(ROOT / ".env")

from app.core.database import init_db, new_session  # noqa: E402
from app.logging import setup_logging  # noqa: E402
from app.services.invoice_job import InvoiceBackgroundJob  # noqa: E402
from app.services.invoice_renderer import default_renderer  # noqa: E402


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate invoices for completed orders that have none")
    parser.add_argument("--batch-size", type=int, default=10)
    parser.add_argument("--max-retries", type=int, default=3)
    parser.add_argument("--delay", type=int, default=1000, help="Delay between batches (ms)")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(level=logging.INFO)
    init_db()
    job = InvoiceBackgroundJob(new_session, default_renderer())
    result = job.run(batch_size=args.batch_size, max_retries=args.max_retries, delay_between_batches=args.delay)
    print(result.model_dump_json(by_alias=True, exclude_none=True, indent=2))
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
