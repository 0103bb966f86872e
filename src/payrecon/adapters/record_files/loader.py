"""Read JSON arrays of records from disk."""

from __future__ import annotations

import json
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import TypeAdapter, ValidationError

from payrecon.domain.errors import RecordFileError

from .schema import ExternalRecordPayload, InternalRecordPayload
from .translator import to_external_record, to_internal_record

if TYPE_CHECKING:
    from os import PathLike

    from payrecon.domain.model import ExternalRecord, InternalRecord

log = getLogger(__name__)

_INTERNAL_ADAPTER = TypeAdapter(list[InternalRecordPayload])
_EXTERNAL_ADAPTER = TypeAdapter(list[ExternalRecordPayload])


def _read_json(path: str | PathLike[str]) -> object:
    file_path = Path(path)
    try:
        raw = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise RecordFileError(f"Cannot read record file {file_path}: {exc}") from exc
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise RecordFileError(f"Invalid JSON in {file_path}: {exc}") from exc


def load_internal_records(path: str | PathLike[str]) -> list[InternalRecord]:
    """Load internal ledger records from a JSON array file."""

    payload = _read_json(path)
    try:
        items = _INTERNAL_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise RecordFileError(f"Invalid internal records in {path}: {exc}") from exc
    records = [to_internal_record(item) for item in items]
    log.debug("Loaded %s internal records from %s", len(records), path)
    return records


def load_external_records(path: str | PathLike[str]) -> list[ExternalRecord]:
    """Load external settlement records from a JSON array file."""

    payload = _read_json(path)
    try:
        items = _EXTERNAL_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise RecordFileError(f"Invalid external records in {path}: {exc}") from exc
    records = [to_external_record(item) for item in items]
    log.debug("Loaded %s external records from %s", len(records), path)
    return records
