"""Record a manual purchase so an email gains access to a product."""
import argparse

import psycopg2
from dotenv import load_dotenv

from accessledger import app_context
from accessledger.app.ledger import PurchaseLedger
from accessledger.app.ledger.repository import PostgresPurchaseRepository
from accessledger.config import load_app_config

load_dotenv()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Grant a product to an email address")
    parser.add_argument("--email", required=True)
    parser.add_argument("--product", required=True, help="Catalog key, alias or upstream product id")
    parser.add_argument("--amount", type=float, default=0.0)
    parser.add_argument("--account-id")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    config = load_app_config()
    app_context.configure(get_conn=lambda: psycopg2.connect(**config.database.as_connect_kwargs()))

    ledger = PurchaseLedger(repository=PostgresPurchaseRepository())
    result = ledger.record_manual_purchase(args.email, args.product, args.amount, args.account_id)
    record = result.record
    if result.created:
        print(f"Granted {record.canonical_product_key} to {record.email} ({record.id}).")
    else:
        print(f"{record.email} already has {record.canonical_product_key} ({record.id}); unchanged.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
