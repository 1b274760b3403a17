import datetime as dt
from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models import SubscriptionCycle, TransactionDirection

MONTH_KEY_REGEX = r"^\d{4}-(0[1-9]|1[0-2])$"


class TransactionCandidate(BaseModel):
    """A transaction read from a bank statement, before categorization."""

    model_config = ConfigDict(frozen=True)

    date: date
    description: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    direction: TransactionDirection
    balance: Optional[Decimal] = None


class TransactionRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    date: date
    description: str
    amount: Decimal = Field(..., gt=0)
    direction: TransactionDirection
    category: str
    balance: Optional[Decimal] = None


class TransactionIn(BaseModel):
    date: date
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., gt=0)
    direction: TransactionDirection
    category: Optional[str] = Field(default=None, max_length=100)
    balance: Optional[Decimal] = None

    @field_validator("description")
    @classmethod
    def _strip_description(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Description cannot be empty")
        return value


class TransactionUpdate(BaseModel):
    date: Optional[dt.date] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    amount: Optional[Decimal] = Field(default=None, gt=0)
    direction: Optional[TransactionDirection] = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)


class CategoryRuleIn(BaseModel):
    keyword: str = Field(..., min_length=1, max_length=120)
    category: str = Field(..., min_length=1, max_length=100)
    priority: int = 0


class CategoryLimitIn(BaseModel):
    category: str = Field(..., min_length=1, max_length=100)
    limit: Decimal = Field(..., ge=0)


class BudgetIn(BaseModel):
    month: str = Field(..., pattern=MONTH_KEY_REGEX)
    total_limit: Decimal = Field(..., ge=0)
    category_limits: list[CategoryLimitIn] = Field(default_factory=list)


class InvestmentIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    initial_amount: Decimal = Field(..., ge=0)
    current_value: Decimal = Field(..., ge=0)
    investment_date: date


class InvestmentRecord(InvestmentIn):
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None


class InvestmentValueIn(BaseModel):
    current_value: Decimal = Field(..., ge=0)


class SubscriptionIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    amount: Decimal = Field(..., ge=0)
    cycle: SubscriptionCycle
    start_date: date


class SubscriptionRecord(SubscriptionIn):
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
