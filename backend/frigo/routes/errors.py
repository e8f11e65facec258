# Overview: Maps service-layer exceptions to JSON error responses.

from __future__ import annotations

from flask import jsonify

from ..extensions import db
from ..validation import ConflictError
from ..services.auth_service import PasswordValidationError
from ..services.cash_service import CashError, DayAlreadyClosedError
from ..services.invoice_service import InvoiceError
from ..services.loan_service import LoanError
from ..services.permission_service import PermissionDeniedError
from ..services.reception_service import ReceptionError
from ..services.reservation_service import ReservationError
from ..services.sequence_service import DocumentSequenceError
from ..services.tenant_service import TenantAccessError


# Order matters: subclasses before their bases
_STATUS_BY_ERROR = (
    (TenantAccessError, 404),
    (PermissionDeniedError, 403),
    (DayAlreadyClosedError, 409),
    (ConflictError, 409),
    (ReservationError, 409),
    (LoanError, 409),
    (CashError, 409),
    (InvoiceError, 409),
    (ReceptionError, 409),
    (DocumentSequenceError, 409),
    (PasswordValidationError, 400),
    (ValueError, 400),
)

DOMAIN_ERRORS = tuple(error for error, _ in _STATUS_BY_ERROR)


def json_error(exc: Exception):
    """
    JSON response for a domain exception.

    The session is rolled back first: services may have touched rows
    before raising.
    """
    db.session.rollback()
    for error, status in _STATUS_BY_ERROR:
        if isinstance(exc, error):
            return jsonify({"error": str(exc)}), status
    return jsonify({"error": "Internal server error"}), 500
