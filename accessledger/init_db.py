"""Create the ledger schema in the configured database."""
import psycopg2
from dotenv import load_dotenv

from accessledger.config import load_app_config
from accessledger.schema import init_schema

load_dotenv()


def main():
    config = load_app_config()
    conn = psycopg2.connect(**config.database.as_connect_kwargs())
    try:
        init_schema(conn)
    finally:
        conn.close()
    print(f"Schema ready in {config.database.dbname}.")


if __name__ == "__main__":
    main()
