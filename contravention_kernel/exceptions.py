"""
Typed Exception Hierarchy for the Contravention Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the engine must react to failures by category, not by parsing
message strings. Every exception therefore carries:
  1. A TYPED class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. A KIND class attribute (one of the six ErrorKind categories the engine
     reports at its boundary)
  4. Structured DATA attributes (ids, statuses, actors)

Example:
    try:
        workflow.review(approval_id, actor, ApprovalDecision.REJECTED, notes="")
    except RejectionNotesRequiredError as e:
        api_response(code=e.code, kind=e.kind.value, approval=e.approval_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ContraventionKernelError (base)
    |
    +-- NotFoundError                       kind=NOT_FOUND
    |   +-- ContraventionNotFoundError
    |   +-- ApprovalRequestNotFoundError
    |   +-- EmployeeNotFoundError
    |   +-- ApproverNotFoundError
    |   +-- TrainingRecordNotFoundError
    |   +-- ContraventionTypeNotFoundError
    |   +-- CourseNotFoundError
    |   +-- EscalationNotFoundError
    |
    +-- InvalidStateError                   kind=INVALID_STATE
    |   +-- InvalidStatusTransitionError
    |   +-- ApprovalAlreadyReviewedError
    |   +-- PendingApprovalExistsError
    |   +-- TrainingNotCompletedError
    |
    +-- ForbiddenError                      kind=FORBIDDEN
    |   +-- NotContraventionFilerError
    |   +-- UnauthorizedReviewerError
    |   +-- AdminRequiredError
    |
    +-- ValidationFailureError              kind=VALIDATION_FAILURE
    |   +-- InvalidPayloadError
    |   +-- RejectionNotesRequiredError
    |   +-- ApproverRoleError
    |   +-- UnknownEscalationActionError
    |
    +-- ConcurrencyError                    kind=CONCURRENCY_CONFLICT
    |   +-- OptimisticLockError
    |
    +-- ReconciliationError                 kind=RECONCILIATION_DRIFT
    |   +-- PointsDriftError
    |
    +-- AuditError                          kind=INVALID_STATE
    |   +-- AuditChainBrokenError
    |
    +-- ImmutabilityError                   kind=INVALID_STATE
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Kind                 | Code                          | When Raised
---------------------|-------------------------------|------------------------------
NOT_FOUND            | CONTRAVENTION_NOT_FOUND       | Unknown contravention id
                     | APPROVAL_REQUEST_NOT_FOUND    | Unknown approval request id
                     | APPROVER_NOT_FOUND            | Resubmission approver unresolved
                     | TRAINING_RECORD_NOT_FOUND     | Unknown training record
---------------------|-------------------------------|------------------------------
INVALID_STATE        | INVALID_STATUS_TRANSITION     | Transition not in the table
                     | APPROVAL_ALREADY_REVIEWED     | Request is not pending
                     | PENDING_APPROVAL_EXISTS       | Second pending request
                     | TRAINING_NOT_COMPLETED        | Credit before completion
---------------------|-------------------------------|------------------------------
FORBIDDEN            | NOT_CONTRAVENTION_FILER       | Actor did not file the record
                     | UNAUTHORIZED_REVIEWER         | Neither approver nor admin
                     | NOT_TRAINING_ASSIGNEE         | Starting someone else's course
                     | ADMIN_REQUIRED                | Admin-only operation
---------------------|-------------------------------|------------------------------
VALIDATION_FAILURE   | INVALID_PAYLOAD               | Malformed engine input
                     | REJECTION_NOTES_REQUIRED      | Reject without notes
                     | APPROVER_ROLE_INVALID         | Approver lacks approver role
---------------------|-------------------------------|------------------------------
CONCURRENCY_CONFLICT | OPTIMISTIC_LOCK_CONFLICT      | Stale version on write
---------------------|-------------------------------|------------------------------
RECONCILIATION_DRIFT | POINTS_DRIFT                  | Cached total != recomputed

===============================================================================
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Failure categories reported at the engine boundary."""

    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    FORBIDDEN = "forbidden"
    VALIDATION_FAILURE = "validation_failure"
    CONCURRENCY_CONFLICT = "concurrency_conflict"
    RECONCILIATION_DRIFT = "reconciliation_drift"

    @property
    def is_retryable(self) -> bool:
        return self is ErrorKind.CONCURRENCY_CONFLICT


class ContraventionKernelError(Exception):
    """
    Base exception for all contravention kernel errors.

    All subclasses carry a `code` and a `kind` class attribute.
    """

    code: str = "CONTRAVENTION_KERNEL_ERROR"
    kind: ErrorKind = ErrorKind.INVALID_STATE


# Not-found exceptions


class NotFoundError(ContraventionKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"
    kind: ErrorKind = ErrorKind.NOT_FOUND


class ContraventionNotFoundError(NotFoundError):
    """Contravention with given ID was not found."""

    code: str = "CONTRAVENTION_NOT_FOUND"

    def __init__(self, contravention_id: str):
        self.contravention_id = contravention_id
        super().__init__(f"Contravention not found: {contravention_id}")


class ApprovalRequestNotFoundError(NotFoundError):
    """Approval request with given ID was not found."""

    code: str = "APPROVAL_REQUEST_NOT_FOUND"

    def __init__(self, approval_id: str):
        self.approval_id = approval_id
        super().__init__(f"Approval request not found: {approval_id}")


class EmployeeNotFoundError(NotFoundError):
    """Employee is unknown to the directory."""

    code: str = "EMPLOYEE_NOT_FOUND"

    def __init__(self, employee_id: str):
        self.employee_id = employee_id
        super().__init__(f"Employee not found: {employee_id}")


class ApproverNotFoundError(NotFoundError):
    """No directory user matches the approver email."""

    code: str = "APPROVER_NOT_FOUND"

    def __init__(self, approver_email: str | None):
        self.approver_email = approver_email
        super().__init__(f"Approver not found for email: {approver_email}")


class TrainingRecordNotFoundError(NotFoundError):
    """Training record with given ID was not found."""

    code: str = "TRAINING_RECORD_NOT_FOUND"

    def __init__(self, training_record_id: str):
        self.training_record_id = training_record_id
        super().__init__(f"Training record not found: {training_record_id}")


class ContraventionTypeNotFoundError(NotFoundError):
    """Contravention type with given ID was not found."""

    code: str = "CONTRAVENTION_TYPE_NOT_FOUND"

    def __init__(self, type_id: str):
        self.type_id = type_id
        super().__init__(f"Contravention type not found: {type_id}")


class CourseNotFoundError(NotFoundError):
    """Training course was not found (or no active course exists)."""

    code: str = "COURSE_NOT_FOUND"

    def __init__(self, course_id: str | None):
        self.course_id = course_id
        super().__init__(f"Course not found: {course_id}")


class EscalationNotFoundError(NotFoundError):
    """Escalation record with given ID was not found."""

    code: str = "ESCALATION_NOT_FOUND"

    def __init__(self, escalation_id: str):
        self.escalation_id = escalation_id
        super().__init__(f"Escalation not found: {escalation_id}")


# Invalid-state exceptions


class InvalidStateError(ContraventionKernelError):
    """Base exception for operations not allowed in the current state."""

    code: str = "INVALID_STATE"
    kind: ErrorKind = ErrorKind.INVALID_STATE


class InvalidStatusTransitionError(InvalidStateError):
    """Contravention status transition is not in the transition table."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, contravention_id: str, from_status: str, to_status: str):
        self.contravention_id = contravention_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Contravention {contravention_id}: cannot transition "
            f"from {from_status} to {to_status}"
        )


class ApprovalAlreadyReviewedError(InvalidStateError):
    """Approval request is no longer pending."""

    code: str = "APPROVAL_ALREADY_REVIEWED"

    def __init__(self, approval_id: str, status: str):
        self.approval_id = approval_id
        self.status = status
        super().__init__(f"Approval request {approval_id} is already {status}")


class PendingApprovalExistsError(InvalidStateError):
    """A pending approval request already exists for the contravention."""

    code: str = "PENDING_APPROVAL_EXISTS"

    def __init__(self, contravention_id: str, approval_id: str):
        self.contravention_id = contravention_id
        self.approval_id = approval_id
        super().__init__(
            f"Contravention {contravention_id} already has pending "
            f"approval request {approval_id}"
        )


class TrainingNotCompletedError(InvalidStateError):
    """Training credit requested for a record that is not completed."""

    code: str = "TRAINING_NOT_COMPLETED"

    def __init__(self, training_record_id: str, status: str):
        self.training_record_id = training_record_id
        self.status = status
        super().__init__(
            f"Training record {training_record_id} is {status}, not completed"
        )


# Forbidden exceptions


class ForbiddenError(ContraventionKernelError):
    """Base exception for actors lacking the right to perform an operation."""

    code: str = "FORBIDDEN"
    kind: ErrorKind = ErrorKind.FORBIDDEN


class NotContraventionFilerError(ForbiddenError):
    """Actor is not the employee who filed the contravention."""

    code: str = "NOT_CONTRAVENTION_FILER"

    def __init__(self, contravention_id: str, actor_id: str):
        self.contravention_id = contravention_id
        self.actor_id = actor_id
        super().__init__(
            f"Actor {actor_id} did not file contravention {contravention_id}"
        )


class UnauthorizedReviewerError(ForbiddenError):
    """Actor is neither the assigned approver nor an administrator."""

    code: str = "UNAUTHORIZED_REVIEWER"

    def __init__(self, approval_id: str, actor_id: str):
        self.approval_id = approval_id
        self.actor_id = actor_id
        super().__init__(
            f"Actor {actor_id} may not review approval request {approval_id}"
        )


class NotTrainingAssigneeError(ForbiddenError):
    """Actor is neither the enrolled employee nor an administrator."""

    code: str = "NOT_TRAINING_ASSIGNEE"

    def __init__(self, training_record_id: str, actor_id: str):
        self.training_record_id = training_record_id
        self.actor_id = actor_id
        super().__init__(
            f"Actor {actor_id} is not enrolled in training record {training_record_id}"
        )


class AdminRequiredError(ForbiddenError):
    """Operation is restricted to administrators."""

    code: str = "ADMIN_REQUIRED"

    def __init__(self, operation: str, actor_id: str):
        self.operation = operation
        self.actor_id = actor_id
        super().__init__(f"Operation {operation} requires an administrator")


# Validation exceptions


class ValidationFailureError(ContraventionKernelError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_FAILURE"
    kind: ErrorKind = ErrorKind.VALIDATION_FAILURE


class InvalidPayloadError(ValidationFailureError):
    """Engine input failed validation."""

    code: str = "INVALID_PAYLOAD"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class RejectionNotesRequiredError(ValidationFailureError):
    """A rejection must carry review notes."""

    code: str = "REJECTION_NOTES_REQUIRED"

    def __init__(self, approval_id: str):
        self.approval_id = approval_id
        super().__init__(f"Rejecting approval request {approval_id} requires notes")


class ApproverRoleError(ValidationFailureError):
    """Resolved approver does not hold an approving role."""

    code: str = "APPROVER_ROLE_INVALID"

    def __init__(self, approver_id: str, role: str):
        self.approver_id = approver_id
        self.role = role
        super().__init__(
            f"User {approver_id} has role {role} and cannot approve contraventions"
        )


class UnknownEscalationActionError(ValidationFailureError):
    """Action is not one of the escalation's required actions."""

    code: str = "UNKNOWN_ESCALATION_ACTION"

    def __init__(self, escalation_id: str, action: str):
        self.escalation_id = escalation_id
        self.action = action
        super().__init__(
            f"Action {action!r} is not required by escalation {escalation_id}"
        )


# Concurrency exceptions


class ConcurrencyError(ContraventionKernelError):
    """Base exception for concurrency conflicts."""

    code: str = "CONCURRENCY_ERROR"
    kind: ErrorKind = ErrorKind.CONCURRENCY_CONFLICT


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Reconciliation exceptions


class ReconciliationError(ContraventionKernelError):
    """Base exception for ledger/source disagreement."""

    code: str = "RECONCILIATION_ERROR"
    kind: ErrorKind = ErrorKind.RECONCILIATION_DRIFT


class PointsDriftError(ReconciliationError):
    """Cached point total disagrees with the recomputed total."""

    code: str = "POINTS_DRIFT"

    def __init__(self, employee_id: str, cached_total: int, expected_total: int):
        self.employee_id = employee_id
        self.cached_total = cached_total
        self.expected_total = expected_total
        super().__init__(
            f"Employee {employee_id}: cached total {cached_total} "
            f"!= recomputed total {expected_total}"
        )


# Audit exceptions


class AuditError(ContraventionKernelError):
    """Base exception for audit trail errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_event_id: str, expected_hash: str, actual_hash: str):
        self.audit_event_id = audit_event_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_event_id}: "
            f"expected {expected_hash}, found {actual_hash}"
        )


# Immutability exceptions


class ImmutabilityError(ContraventionKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an append-only record.

    Point events, points archives and audit events are immutable after
    creation.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify immutable {entity_type} {entity_id}: {reason}"
        )
