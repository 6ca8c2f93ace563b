"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class SupplierCreate(BaseModel):
    """Request body for POST /v1/suppliers"""

    name: str = Field(..., min_length=1, description="Supplier display name")
    contact: Optional[dict] = None
    address: Optional[dict] = None


class SupplierResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    contact: Optional[dict] = None
    address: Optional[dict] = None
    current_balance: Decimal
    is_active: bool
    created_at: datetime


class BalanceResponse(BaseModel):
    """Response for POST /v1/suppliers/{supplier_id}/balance/sync"""

    supplier_id: UUID
    current_balance: Decimal


class TransactionCreate(BaseModel):
    """Request body for POST /v1/transactions"""

    supplier_id: UUID
    quantity: Decimal = Field(..., gt=0, description="Gross weight in kilos")
    less_kilo: Decimal = Field(Decimal("0"), ge=0, description="Weight deducted for moisture/impurities")
    unit_price: Decimal = Field(..., gt=0, description="Price per net kilo")
    transaction_date: datetime
    status: Literal["pending", "completed"] = "completed"


class LoanDeductionSchema(BaseModel):
    """Single (loan, amount) pair debited from a transaction"""

    model_config = ConfigDict(from_attributes=True)

    loan_id: UUID
    amount: Decimal


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    supplier_id: UUID
    transaction_number: str
    status: str
    quantity: Decimal
    less_kilo: Decimal
    total_kilo: Decimal
    unit_price: Decimal
    total_amount: Decimal
    loan_deduction: Decimal
    amount_after_deduction: Decimal
    paid_amount: Decimal
    loan_payments: List[LoanDeductionSchema]
    transaction_date: datetime
    is_deleted: bool
    created_by: Optional[str] = None


class LedgerResponse(BaseModel):
    """Outcome of a ledger operation on a transaction"""

    transaction: TransactionResponse
    score_stale: bool = False
    partial: bool = False
    orphaned_loan_ids: List[UUID] = []
    reason: Optional[str] = None


class LoanCreate(BaseModel):
    """Request body for POST /v1/loans"""

    supplier_id: UUID
    amount: Decimal = Field(..., gt=0)
    interest_rate: Decimal = Field(Decimal("0"), ge=0, description="Flat interest percentage")
    due_date: datetime
    purpose: Optional[str] = None


class LoanApprove(BaseModel):
    approved_amount: Optional[Decimal] = Field(None, gt=0, description="Adjusted principal")


class LoanVoid(BaseModel):
    reason: Optional[str] = None


class LoanResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    supplier_id: UUID
    amount: Decimal
    interest_rate: Decimal
    total_amount_with_interest: Decimal
    total_paid: Decimal
    principal_paid: Decimal
    interest_paid: Decimal
    remaining_balance: Decimal
    purpose: Optional[str] = None
    status: str
    due_date: datetime
    request_date: datetime
    approval_date: Optional[datetime] = None
    last_payment_date: Optional[datetime] = None
    completion_date: Optional[datetime] = None
    cancelled_date: Optional[datetime] = None
    voided_date: Optional[datetime] = None
    void_reason: Optional[str] = None
    created_by: Optional[str] = None
    approved_by: Optional[str] = None


class PaymentCreate(BaseModel):
    """Request body for POST /v1/loans/{loan_id}/payments"""

    amount: Decimal = Field(..., gt=0)
    payment_method: Literal["manual", "bank-transfer", "cash"] = "manual"
    payment_date: Optional[datetime] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    loan_id: UUID
    transaction_id: Optional[UUID] = None
    amount: Decimal
    interest_portion: Decimal
    principal_portion: Decimal
    payment_method: str
    payment_date: datetime
    reference_number: str
    notes: Optional[str] = None


class PaymentRecordedResponse(BaseModel):
    payment: PaymentResponse
    loan: LoanResponse
    score_stale: bool = False


class CreditScoreResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    supplier_id: UUID
    score: int
    category: str
    is_eligible: bool
    transaction_consistency: int
    total_supply_score: int
    transaction_count_score: int
    eligible_amount: Decimal
    transaction_count: int
    credit_percentage: Decimal
    average_transaction: Decimal
    assessment_date: datetime
    remarks: Optional[str] = None


class CreditScoreHistoryResponse(BaseModel):
    """Response for GET /v1/suppliers/{supplier_id}/credit-score/history"""

    supplier_id: UUID
    scores: List[CreditScoreResponse]
