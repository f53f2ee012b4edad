"""Reconciliation: merge external payment observations into transactions."""

from xmr_pos.engine.reconcile.guard import ReconcileGuard
from xmr_pos.engine.reconcile.merger import ReconciliationService, is_accepted, is_confirmed

__all__ = ["ReconcileGuard", "ReconciliationService", "is_accepted", "is_confirmed"]
