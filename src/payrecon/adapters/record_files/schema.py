"""Pydantic models for JSON record files."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003
from decimal import Decimal  # noqa: TC003
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from payrecon.domain.model import PaymentMethod, PaymentStatus, RecordSource


class RecordFileModel(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


def _alias(*names: str) -> Any:
    return Field(validation_alias=AliasChoices(*names))


class InternalRecordPayload(RecordFileModel):
    transaction_id: str = _alias("transaction_id", "transactionId", "id")
    amount: Decimal
    currency: str
    transaction_date: datetime = _alias("transaction_date", "transactionDate", "timestamp")
    order_id: str | None = Field(
        default=None, validation_alias=AliasChoices("order_id", "orderId")
    )
    payment_method: PaymentMethod = Field(
        default=PaymentMethod.OTHER,
        validation_alias=AliasChoices("payment_method", "paymentMethod"),
    )
    status: PaymentStatus = PaymentStatus.COMPLETED
    customer_id: str | None = Field(
        default=None, validation_alias=AliasChoices("customer_id", "customerId")
    )
    merchant_id: str | None = Field(
        default=None, validation_alias=AliasChoices("merchant_id", "merchantId")
    )
    metadata: dict[str, Any] = Field(default_factory=dict)
    source: RecordSource = RecordSource.INTERNAL_SYSTEM

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.upper()

    @field_validator("payment_method", "status", "source", mode="before")
    @classmethod
    def _lower_enum(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value


class ExternalRecordPayload(RecordFileModel):
    reference_id: str = _alias("reference_id", "referenceId", "id")
    amount: Decimal
    currency: str
    settlement_date: datetime = _alias("settlement_date", "settlementDate", "timestamp")
    description: str = ""
    bank_transaction_id: str | None = Field(
        default=None, validation_alias=AliasChoices("bank_transaction_id", "bankTransactionId")
    )
    account_number: str | None = Field(
        default=None, validation_alias=AliasChoices("account_number", "accountNumber")
    )
    counterparty_name: str | None = Field(
        default=None, validation_alias=AliasChoices("counterparty_name", "counterpartyName")
    )
    additional_fields: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("additional_fields", "additionalFields"),
    )
    source: RecordSource = RecordSource.BANK_STATEMENT

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.upper()

    @field_validator("source", mode="before")
    @classmethod
    def _lower_enum(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value
