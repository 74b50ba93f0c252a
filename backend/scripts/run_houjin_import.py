import argparse
import asyncio
import json
import logging
from dataclasses import replace

from db.base import Base
from db.session import SessionLocal, engine
from models import company  # noqa: F401
from services.houjin_import import run_houjin_import
from services.import_errors import SourceUnavailable
from services.import_settings import load_import_settings


def main():
    parser = argparse.ArgumentParser(description="Run the zenkoku houjin import and print the report.")
    parser.add_argument("--csv", help="CSV path (defaults to HOUJIN_CSV_PATH)")
    parser.add_argument("--encoding", help="CSV encoding (defaults to HOUJIN_CSV_ENCODING)")
    parser.add_argument("--concurrency", type=int, help="max in-flight lookups")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    settings = load_import_settings()
    overrides = {}
    if args.csv:
        overrides["csv_path"] = args.csv
    if args.encoding:
        overrides["csv_encoding"] = args.encoding
    if args.concurrency:
        overrides["concurrency"] = args.concurrency
    settings = replace(settings, **overrides)

    Base.metadata.create_all(bind=engine)
    try:
        report = asyncio.run(run_houjin_import(settings, SessionLocal))
    except SourceUnavailable as exc:
        raise SystemExit(str(exc))

    print(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
