# scripts/ingest.py
"""
Bulk-load customers and enrollments from a CSV export.

Expected columns:
    CustomerId, CustomerName, Phone, PlanId, EnrollmentDate, MemberNumber

Usage:
    python -m scripts.ingest data/enrollments.csv
"""

import csv
import sys
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
import logging

from chitfund.db.engine import get_engine
from chitfund.db.schema import customers, enrollments, plans

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)

FILE_PATH = "data/enrollments.csv"


# ---- Helpers ----

def parse_enrollment_date(value: str):
    value = value.strip()
    if not value:
        return None
    value = value.split()[0]
    for fmt in ("%Y-%m-%d", "%d/%m/%Y"):
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Unrecognised enrollment date {value!r}")


def clean(value):
    if value is None:
        return None
    value = value.strip()
    return value or None


def parse_enrollments_csv(file_path: str = FILE_PATH):
    customers_by_id = {}
    enrollments_list = []

    n_rows = 0
    n_errors = 0
    error_examples = []

    seen_member_numbers: set[str] = set()
    duplicate_member_examples: list[str] = []
    duplicate_member_count = 0

    with open(file_path, newline="") as f:
        reader = csv.DictReader(f)

        for row in reader:
            n_rows += 1

            try:
                # ----- CUSTOMER HANDLING -----
                customer_id = clean(row["CustomerId"])
                if customer_id is None:
                    raise ValueError("CustomerId is required")

                if customer_id not in customers_by_id:
                    customers_by_id[customer_id] = {
                        "customer_id": customer_id,
                        "name": clean(row["CustomerName"]) or customer_id,
                        "phone": clean(row.get("Phone")),
                    }
                elif not customers_by_id[customer_id]["phone"] and clean(row.get("Phone")):
                    customers_by_id[customer_id]["phone"] = clean(row["Phone"])

                # ----- ENROLLMENT -----
                member_number = clean(row["MemberNumber"])
                if member_number is None:
                    raise ValueError("MemberNumber is required")

                enrollment_date = parse_enrollment_date(row["EnrollmentDate"])
                if enrollment_date is None:
                    raise ValueError("EnrollmentDate is required")

                if member_number in seen_member_numbers:
                    duplicate_member_count += 1
                    if len(duplicate_member_examples) < 5:
                        duplicate_member_examples.append(
                            f"Duplicate MemberNumber {member_number!r} at CSV row {n_rows}"
                        )
                    continue
                seen_member_numbers.add(member_number)

                enrollments_list.append(
                    {
                        "customer_id": customer_id,
                        "plan_id": int(row["PlanId"]),
                        "enrollment_date": enrollment_date,
                        "member_number": member_number,
                        "status": "active",
                        "total_paid": 0,
                        "total_due": 0,
                        "current_arrear": 0,
                    }
                )

            except Exception as e:
                n_errors += 1
                if len(error_examples) < 5:
                    error_examples.append(
                        {
                            "row_number": n_rows,
                            "row": dict(row),
                            "error": repr(e),
                        }
                    )

    stats = {
        "n_rows": n_rows,
        "n_customers": len(customers_by_id),
        "n_enrollments": len(enrollments_list),
        "n_errors": n_errors,
        "error_examples": error_examples,
        "n_duplicate_members": duplicate_member_count,
        "duplicate_member_examples": duplicate_member_examples,
    }
    return list(customers_by_id.values()), enrollments_list, stats


def load_into_db(customers_list, enrollments_list):
    """
    Upsert customers, then insert enrollments whose plan exists and whose
    member number is not yet taken. Returns the number of enrollments skipped.
    """
    engine = get_engine()
    skipped = 0
    with engine.begin() as conn:
        for c in customers_list:
            stmt = sqlite_insert(customers).values(**c)
            stmt = stmt.on_conflict_do_update(
                index_elements=[customers.c.customer_id],
                set_={"name": stmt.excluded.name, "phone": stmt.excluded.phone},
            )
            conn.execute(stmt)

        known_plans = set(conn.execute(select(plans.c.id)).scalars())

        for e in enrollments_list:
            if e["plan_id"] not in known_plans:
                logger.warning("Skipping %s: plan %s does not exist", e["member_number"], e["plan_id"])
                skipped += 1
                continue
            stmt = sqlite_insert(enrollments).values(**e).on_conflict_do_nothing()
            if conn.execute(stmt).rowcount == 0:
                logger.warning("Skipping %s: already enrolled", e["member_number"])
                skipped += 1
    return skipped


def main(file_path: str = FILE_PATH):
    customers_list, enrollments_list, stats = parse_enrollments_csv(file_path)
    skipped = load_into_db(customers_list, enrollments_list)

    logger.info(f"Total CSV rows read:   {stats['n_rows']}")
    logger.info(f"Unique customers:      {stats['n_customers']}")
    logger.info(f"Enrollments parsed:    {stats['n_enrollments']}")
    logger.info(f"Enrollments skipped:   {skipped}")
    logger.info(f"Rows with errors:      {stats['n_errors']}")
    logger.info(
        "Duplicate member numbers: %s",
        stats["n_duplicate_members"],
    )
    for example in stats["duplicate_member_examples"]:
        logger.warning("Duplicate member example: %s", example)

    if stats["error_examples"]:
        logger.warning("Example errors:")
        for ex in stats["error_examples"]:
            logger.warning("Row %s: %s", ex["row_number"], ex["error"])


if __name__ == "__main__":
    main(sys.argv[1] if len(sys.argv) > 1 else FILE_PATH)
