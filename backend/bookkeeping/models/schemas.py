from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bookkeeping.services.periods import parse_local_date

INCOME_SUBCATEGORIES = ["Donations", "Student Fees", "Grants", "Other Income"]
EXPENSE_SUBCATEGORIES = ["Salaries", "Utilities", "Books & Materials", "Infrastructure", "Other Expenses"]

PeriodMode = Literal["thisMonth", "thisQuarter", "thisFiscalYear", "allTime", "custom"]


class LoginRequest(BaseModel):
    password: str = ""


class TransactionCreateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    date: str
    category: Literal["Income", "Expense"]
    subcategory: str = Field(min_length=1)
    sender: str = Field(min_length=1)
    receiver: str = Field(min_length=1)
    remarks: str = ""
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)

    @field_validator("date")
    @classmethod
    def check_date(cls, value: str) -> str:
        if parse_local_date(value) is None:
            raise ValueError("date must be a calendar date in YYYY-MM-DD form")
        return value

    @field_validator("remarks")
    @classmethod
    def check_remarks(cls, value: str) -> str:
        if value and len(value) < 3:
            raise ValueError("Remarks should be at least 3 characters")
        return value


class SenderCreateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    sender: str = Field(min_length=1, max_length=255)


class TransactionItem(BaseModel):
    id: int
    date: str
    category: str
    subcategory: str
    sender: str
    receiver: str
    remarks: str | None = None
    amount: Decimal
    created_at: str | None = None
