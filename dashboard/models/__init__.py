"""
Pydantic models for dashboard API requests.
"""
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from models.actions import Action
from models.status import PaymentMode


class TransitionRequest(BaseModel):
    action: Action   # confirm | cancel | save


class PaymentCreate(BaseModel):
    amount: Decimal
    mode: PaymentMode = PaymentMode.BANK_TRANSFER
    reference: Optional[str] = None
    notes: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class BudgetRevise(BaseModel):
    new_amount: Decimal
    reason: Optional[str] = None


class BudgetRecalculate(BaseModel):
    achieved_amount: Decimal
