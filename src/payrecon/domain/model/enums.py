"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


def _title(value: str) -> str:
    return value.replace("_", " ").title()


class PaymentMethod(StrEnum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    BANK_TRANSFER = "bank_transfer"
    DIGITAL_WALLET = "digital_wallet"
    CRYPTOCURRENCY = "cryptocurrency"
    CHECK = "check"
    CASH = "cash"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return _title(self.value)


class PaymentStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    DISPUTED = "disputed"

    @property
    def display_name(self) -> str:
        return _title(self.value)


class RecordSource(StrEnum):
    """Where a record entered the system."""

    INTERNAL_SYSTEM = "internal_system"
    BANK_STATEMENT = "bank_statement"
    PAYMENT_GATEWAY = "payment_gateway"
    THIRD_PARTY_PROCESSOR = "third_party_processor"
    MANUAL_ENTRY = "manual_entry"
    API_INTEGRATION = "api_integration"
    FILE_IMPORT = "file_import"

    @property
    def display_name(self) -> str:
        return _title(self.value)


class DiscrepancyType(StrEnum):
    AMOUNT_MISMATCH = "amount_mismatch"
    CURRENCY_MISMATCH = "currency_mismatch"
    DATE_MISMATCH = "date_mismatch"
    REFERENCE_MISMATCH = "reference_mismatch"
    INVALID_DATA = "invalid_data"
    MISSING_EXTERNAL = "missing_external"
    MISSING_INTERNAL = "missing_internal"

    @property
    def display_name(self) -> str:
        return _DISCREPANCY_TYPE_NAMES[self]

    @property
    def is_missing_counterpart(self) -> bool:
        return self in (DiscrepancyType.MISSING_EXTERNAL, DiscrepancyType.MISSING_INTERNAL)


_DISCREPANCY_TYPE_NAMES: dict[DiscrepancyType, str] = {
    DiscrepancyType.AMOUNT_MISMATCH: "Amount Mismatch",
    DiscrepancyType.CURRENCY_MISMATCH: "Currency Mismatch",
    DiscrepancyType.DATE_MISMATCH: "Date Mismatch",
    DiscrepancyType.REFERENCE_MISMATCH: "Reference Mismatch",
    DiscrepancyType.INVALID_DATA: "Invalid Data",
    DiscrepancyType.MISSING_EXTERNAL: "Missing External Record",
    DiscrepancyType.MISSING_INTERNAL: "Missing Internal Record",
}


class DiscrepancySeverity(StrEnum):
    """Severity grade; members are declared in ascending order."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def level(self) -> int:
        return _SEVERITY_LEVELS[self]

    @property
    def display_name(self) -> str:
        return _title(self.value)


_SEVERITY_LEVELS: dict[DiscrepancySeverity, int] = {
    severity: index for index, severity in enumerate(DiscrepancySeverity, start=1)
}


class ResolutionAction(StrEnum):
    AUTO_RESOLVED = "auto_resolved"
    MANUAL_REVIEW = "manual_review"
    ESCALATED = "escalated"
    PENDING_APPROVAL = "pending_approval"
    IGNORED = "ignored"
    SYSTEM_CORRECTION = "system_correction"

    @property
    def display_name(self) -> str:
        return _RESOLUTION_ACTION_NAMES[self]


_RESOLUTION_ACTION_NAMES: dict[ResolutionAction, str] = {
    ResolutionAction.AUTO_RESOLVED: "Automatically Resolved",
    ResolutionAction.MANUAL_REVIEW: "Requires Manual Review",
    ResolutionAction.ESCALATED: "Escalated to Supervisor",
    ResolutionAction.PENDING_APPROVAL: "Pending Approval",
    ResolutionAction.IGNORED: "Ignored - Within Tolerance",
    ResolutionAction.SYSTEM_CORRECTION: "System Correction Applied",
}


class ReportKind(StrEnum):
    SUMMARY = "summary"
    DETAILED = "detailed"
    DISCREPANCY = "discrepancy"
    EXCEPTION = "exception"
    TREND_ANALYSIS = "trend_analysis"
    AUDIT_TRAIL = "audit_trail"
    PERFORMANCE = "performance"

    @property
    def display_name(self) -> str:
        return _REPORT_KIND_NAMES[self]


_REPORT_KIND_NAMES: dict[ReportKind, str] = {
    ReportKind.SUMMARY: "Summary Report",
    ReportKind.DETAILED: "Detailed Report",
    ReportKind.DISCREPANCY: "Discrepancy Report",
    ReportKind.EXCEPTION: "Exception Report",
    ReportKind.TREND_ANALYSIS: "Trend Analysis",
    ReportKind.AUDIT_TRAIL: "Audit Trail",
    ReportKind.PERFORMANCE: "Performance Report",
}


class RunState(StrEnum):
    """Lifecycle state of a reconciliation engine."""

    IDLE = "idle"
    PROCESSING = "processing"
    BATCH_PROCESSING = "batch_processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_busy(self) -> bool:
        return self in (RunState.PROCESSING, RunState.BATCH_PROCESSING)
