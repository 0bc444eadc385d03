"""Kernel write services.  None of them commit; the caller owns the transaction."""

from contravention_kernel.services.approval_service import ApprovalWorkflowService
from contravention_kernel.services.auditor_service import AuditorService, AuditTraceEntry
from contravention_kernel.services.catalog_service import CatalogService
from contravention_kernel.services.contravention_service import ContraventionService
from contravention_kernel.services.maintenance_service import PointsMaintenanceService
from contravention_kernel.services.points_ledger import PointLedgerService
from contravention_kernel.services.sequence_service import (
    ReferenceNumberService,
    SequenceService,
)
from contravention_kernel.services.training_service import TrainingService

__all__ = [
    "ApprovalWorkflowService",
    "AuditTraceEntry",
    "AuditorService",
    "CatalogService",
    "ContraventionService",
    "PointLedgerService",
    "PointsMaintenanceService",
    "ReferenceNumberService",
    "SequenceService",
    "TrainingService",
]
