"""Background workers for the storefront service."""

from .reconciliation_worker import ReconciliationWorker

__all__ = ["ReconciliationWorker"]
