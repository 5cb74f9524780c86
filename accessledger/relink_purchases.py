"""Attribute guest purchases for an email to an account, reporting conflicts."""
import argparse

import psycopg2
from dotenv import load_dotenv

from accessledger import app_context
from accessledger.app.ledger import AccountLinker
from accessledger.app.ledger.repository import PostgresPurchaseRepository
from accessledger.app.services.purchases import LoggingLinkConflictReporter
from accessledger.config import load_app_config

load_dotenv()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Link guest purchases to an account")
    parser.add_argument("--account-id", required=True)
    parser.add_argument("--email", required=True)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    config = load_app_config()
    app_context.configure(get_conn=lambda: psycopg2.connect(**config.database.as_connect_kwargs()))

    linker = AccountLinker(
        repository=PostgresPurchaseRepository(),
        conflict_reporter=LoggingLinkConflictReporter(),
    )
    result = linker.relink(args.account_id, args.email)
    print(f"Linked {result.linked_count} purchase(s) to {result.account_id}.")
    for conflict in result.conflicts:
        print(
            f"Conflict: purchase {conflict.record_id} ({conflict.canonical_product_key}) "
            f"belongs to {conflict.existing_account_id}"
        )
    return 1 if result.conflicts else 0


if __name__ == "__main__":
    raise SystemExit(main())
