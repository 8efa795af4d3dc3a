#!/usr/bin/env python3
import argparse
import sys
from datetime import datetime
from pathlib import Path

project_root = Path(__file__).resolve().parents[1]
sys.path.append(str(project_root))

from sqlmodel import Session

from app.core.database import engine
from app.models import TokenPurpose
from app.services.token_store import SQLTokenStore, StoreUnavailable


def purge(session: Session, purposes, now: datetime) -> dict:
    store = SQLTokenStore(session)
    return {purpose: store.purge_expired(purpose, now) for purpose in purposes}


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Delete expired verification, reset and doctor tokens")
    parser.add_argument(
        "--purpose",
        choices=[p.value for p in TokenPurpose],
        action="append",
        help="Limit to one purpose (repeatable); all purposes by default",
    )
    args = parser.parse_args(argv)

    purposes = [TokenPurpose(p) for p in args.purpose] if args.purpose else list(TokenPurpose)

    with Session(engine) as session:
        try:
            counts = purge(session, purposes, datetime.utcnow())
        except StoreUnavailable as exc:
            print(f"Database unavailable: {exc}")
            return 1

    for purpose, count in counts.items():
        print(f"{purpose.value}: {count} expired token(s) deleted")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
