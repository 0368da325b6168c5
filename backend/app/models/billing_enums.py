"""
Facility invoice payment enumerations.
"""

import enum


class InvoicePaymentStatus(str, enum.Enum):
    """Payment status strings shown on facility invoices."""
    UNPAID = "UNPAID"
    PROCESSING_PAYMENT = "PROCESSING PAYMENT"
    PAID = "PAID"
    PAID_WITH_CARD = "PAID WITH CARD"
    PAID_WITH_BANK_TRANSFER = "PAID WITH BANK TRANSFER"
    CHECK_BEING_VERIFIED = "PAID WITH CHECK (BEING VERIFIED)"
    CHECK_VERIFIED = "PAID WITH CHECK - VERIFIED"
    CHECK_HAS_ISSUES = "CHECK PAYMENT - HAS ISSUES"
    NEEDS_ATTENTION = "NEEDS ATTENTION - RETRY PAYMENT"


class CheckVerificationAction(str, enum.Enum):
    """Dispatcher outcome when verifying a mailed check."""
    RECEIVED = "received"
    HAS_ISSUES = "has_issues"
