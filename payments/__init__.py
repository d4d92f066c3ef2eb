"""Attestation-based payment workflow."""

from .workflow import PaymentWorkflow, derive_payment_status

__all__ = ["PaymentWorkflow", "derive_payment_status"]
