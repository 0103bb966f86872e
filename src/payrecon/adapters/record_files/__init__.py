"""Public interface for the JSON record file adapter."""

from __future__ import annotations

from .loader import load_external_records, load_internal_records
from .schema import ExternalRecordPayload, InternalRecordPayload
from .translator import to_external_record, to_internal_record

__all__ = [
    "ExternalRecordPayload",
    "InternalRecordPayload",
    "load_external_records",
    "load_internal_records",
    "to_external_record",
    "to_internal_record",
]
