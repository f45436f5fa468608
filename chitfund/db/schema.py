# chitfund/db/schema.py

from sqlalchemy import (
    MetaData, Table, Column, Integer, String,
    Numeric, Date, DateTime, ForeignKey, CheckConstraint, Text,
    UniqueConstraint,
)

metadata = MetaData()

customers = Table(
    "customers",
    metadata,
    Column("customer_id", String, primary_key=True),
    Column("name", String, nullable=False),
    Column("phone", String, nullable=True),
)

plans = Table(
    "plans",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("plan_name", String, nullable=False),
    Column("total_amount", Numeric(18, 2), nullable=False),
    Column("duration", Integer, nullable=False),
    Column("plan_type", String, nullable=False, default="monthly"),
    # Flat per-installment amount, used when no per-installment rows exist
    Column("monthly_amount", Numeric(18, 2), nullable=True),
    CheckConstraint("duration >= 1", name="ck_plans_duration_positive"),
    CheckConstraint("total_amount >= 0", name="ck_plans_total_nonneg"),
)

plan_installments = Table(
    "plan_installments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("plan_id", Integer, ForeignKey("plans.id"), nullable=False),
    Column("month_number", Integer, nullable=False),
    Column("installment_amount", Numeric(18, 2), nullable=True),
    Column("dividend", Numeric(18, 2), nullable=False, default=0),
    Column("payable_amount", Numeric(18, 2), nullable=True),
    UniqueConstraint("plan_id", "month_number", name="uq_plan_installments_month"),
)

enrollments = Table(
    "enrollments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("customer_id", String, ForeignKey("customers.customer_id"), nullable=False),
    Column("plan_id", Integer, ForeignKey("plans.id"), nullable=False),
    Column("enrollment_date", Date, nullable=False),
    Column("member_number", String, nullable=False, unique=True),
    Column("status", String, nullable=False, default="active"),
    Column("total_paid", Numeric(18, 2), nullable=False, default=0),
    Column("total_due", Numeric(18, 2), nullable=False, default=0),
    Column("current_arrear", Numeric(18, 2), nullable=False, default=0),
    Column("arrear_last_updated", DateTime, nullable=True),
    UniqueConstraint("customer_id", "plan_id", name="uq_enrollments_customer_plan"),
)

invoices = Table(
    "invoices",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("invoice_number", Text, unique=True, nullable=False),
    Column("enrollment_id", Integer, ForeignKey("enrollments.id"), nullable=False),
    Column("customer_id", String, ForeignKey("customers.customer_id"), nullable=False),
    Column("plan_id", Integer, ForeignKey("plans.id"), nullable=False),
    Column("member_number", String, nullable=False),
    Column("due_number", Integer, nullable=False),
    Column("invoice_date", Date, nullable=False),
    Column("due_amount", Numeric(18, 2), nullable=False),
    Column("arrear_amount", Numeric(18, 2), nullable=False),
    Column("received_amount", Numeric(18, 2), nullable=False),
    Column("received_arrear_amount", Numeric(18, 2), nullable=False, default=0),
    Column("balance_amount", Numeric(18, 2), nullable=False),
    Column("total_amount", Numeric(18, 2), nullable=False),
    Column("payment_month", Text, nullable=False),
    Column("created_at", DateTime, nullable=False),
    CheckConstraint("due_number >= 1", name="ck_invoices_due_number_positive"),
    CheckConstraint("received_amount >= 0", name="ck_invoices_received_nonneg"),
    # One invoice per enrollment per calendar day keeps the chain totally ordered
    UniqueConstraint("enrollment_id", "invoice_date", name="uq_invoices_enrollment_date"),
)

counters = Table(
    "counters",
    metadata,
    Column("name", String, primary_key=True),
    Column("value", Integer, nullable=False, default=0),
)
