# clinicflow/db/init_db.py
from __future__ import annotations

import argparse
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinicflow.core.config import settings
from clinicflow.db.session import engine
from clinicflow.db.base import Base
from clinicflow.models.billing import BillingNumberSeries
from clinicflow.services.billing_numbers import RECEIPT_DOC_TYPE, receipt_prefix


def print_tables(eng) -> set:
    names = inspect(eng).get_table_names()
    print("Existing tables:", names)
    return set(names)


def seed_number_series(db: Session) -> None:
    """
    Make sure this year's receipt series exists; safe to run multiple times.
    """
    prefix = receipt_prefix()
    exists = (db.query(BillingNumberSeries).filter(
        BillingNumberSeries.doc_type == RECEIPT_DOC_TYPE).filter(
            BillingNumberSeries.prefix == prefix).first())
    if not exists:
        db.add(
            BillingNumberSeries(
                doc_type=RECEIPT_DOC_TYPE,
                prefix=prefix,
                padding=settings.RECEIPT_PADDING,
                next_number=1,
                is_active=True,
            ))


def run(fresh: bool = False) -> None:
    if fresh:
        print("WARNING: Dropping ALL tables (dev only) …")
        Base.metadata.drop_all(bind=engine)

    print("Creating all missing tables …")
    Base.metadata.create_all(bind=engine)
    print_tables(engine)

    try:
        with Session(engine) as db:
            seed_number_series(db)
            db.commit()
            print("Receipt number series ready.")
    except SQLAlchemyError as e:
        print("Seeding failed:", e)
        raise


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Initialize DB (create tables, seed number series).")
    parser.add_argument(
        "--fresh",
        action="store_true",
        help="Drop & recreate all tables (DEV ONLY).",
    )
    args = parser.parse_args()
    run(fresh=args.fresh)
