# chitfund/billing/exceptions.py
"""
Domain errors raised by the billing engine.

Every error carries the HTTP status the API layer reports it with, so
routes can translate them without knowing each type.
"""


class BillingError(Exception):
    """
    Base class for billing-related errors.

    Raising one of these never leaves partial state behind.
    """

    status_code = 400


class EnrollmentNotFound(BillingError):
    """No enrollment exists for the requested customer/plan (or id)."""

    status_code = 404


class EnrollmentInactive(BillingError):
    """The enrollment is completed or cancelled and cannot be billed."""


class PlanNotFound(BillingError):
    status_code = 404


class CustomerNotFound(BillingError):
    status_code = 404


class InvoiceNotFound(BillingError):
    status_code = 404


class InvalidDueNumber(BillingError):
    """
    The installment number is outside 1..duration.

    Raised both for computed due numbers (invoice date inconsistent with
    the enrollment) and for manual overrides.
    """


class PlanScheduleMissing(BillingError):
    """The plan has no amount configured for the requested installment."""


class InvalidPlanSchedule(BillingError):
    """A plan definition whose schedule does not match its duration."""


class InvoiceOrderError(BillingError):
    """
    The invoice would not be the newest in its enrollment's chain.

    Invoices for one enrollment must be created in strictly increasing
    date order, otherwise arrears computed from the "most recent prior"
    invoice would go stale.
    """

    status_code = 409


class DuplicateMemberNumber(BillingError):
    status_code = 409


class DuplicateEnrollment(BillingError):
    status_code = 409


class DuplicateCustomer(BillingError):
    status_code = 409


class InvalidAmount(BillingError):
    """A received amount below zero."""
