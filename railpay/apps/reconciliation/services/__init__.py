from .reconciler import EventReconciler, KindReport, ReconciliationReport
from .runs import run_reconciliation

__all__ = ["EventReconciler", "KindReport", "ReconciliationReport", "run_reconciliation"]
