import datetime
import re
from typing import List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


MAX_AMOUNT = 10_000_000


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys (categoryId, totalExpenses, ...)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ----------------------------
# AUTH SCHEMAS
# ----------------------------

class UserCreate(CamelModel):
    name: str
    email: EmailStr
    password: str
    confirm_password: str

    @field_validator("name")
    @classmethod
    def name_length(cls, v: str):
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters")
        return v

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str):
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        if not re.search(r"[A-Z]", v):
            raise ValueError("Password must contain at least one uppercase letter")
        if not re.search(r"[a-z]", v):
            raise ValueError("Password must contain at least one lowercase letter")
        if not re.search(r"[0-9]", v):
            raise ValueError("Password must contain at least one number")
        return v

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class Token(BaseModel):
    access_token: str
    token_type: str
    user_name: str


class UserResponse(CamelModel):
    id: int
    name: str
    email: str


class RegisterOut(BaseModel):
    user: UserResponse


# ----------------------------
# CATEGORY SCHEMAS
# ----------------------------

class CategoryResponse(CamelModel):
    id: int
    name: str
    icon: str
    color: str


class CategoryListOut(BaseModel):
    categories: List[CategoryResponse]


# ----------------------------
# MONTHLY BUDGET SCHEMAS
# ----------------------------

class BudgetCreate(CamelModel):
    amount: float = Field(..., allow_inf_nan=False)
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2020, le=2100)

    @field_validator("amount")
    @classmethod
    def amount_range(cls, v: float):
        if v <= 0:
            raise ValueError("Budget must be a positive amount")
        if v > MAX_AMOUNT:
            raise ValueError("Budget cannot exceed Rs. 10,000,000")
        return v


class BudgetResponse(CamelModel):
    id: int
    user_id: int
    amount: float
    month: int
    year: int
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None


class BudgetOut(BaseModel):
    budget: Optional[BudgetResponse]


# ----------------------------
# EXPENSE SCHEMAS
# ----------------------------

class ExpenseCreate(CamelModel):
    amount: float = Field(..., allow_inf_nan=False)
    category_id: int
    description: Optional[str] = None
    date: datetime.date

    @field_validator("amount")
    @classmethod
    def amount_range(cls, v: float):
        if v <= 0:
            raise ValueError("Amount must be a positive number")
        if v > MAX_AMOUNT:
            raise ValueError("Amount cannot exceed Rs. 10,000,000")
        return v

    @field_validator("category_id")
    @classmethod
    def category_selected(cls, v: int):
        if v < 1:
            raise ValueError("Please select a category")
        return v

    @field_validator("description")
    @classmethod
    def description_length(cls, v: Optional[str]):
        if v is not None and len(v) > 500:
            raise ValueError("Description cannot exceed 500 characters")
        return v or None

    @field_validator("date", mode="before")
    @classmethod
    def date_part(cls, v):
        # "2026-10-19T08:30:00.000Z" from a date picker counts as 2026-10-19
        if isinstance(v, str) and len(v) > 10 and v[10] == "T":
            return v[:10]
        return v


class ExpenseResponse(CamelModel):
    id: int
    user_id: int
    category_id: int
    amount: float
    description: Optional[str] = None
    date: datetime.date
    category: CategoryResponse
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None


class ExpenseOut(BaseModel):
    expense: ExpenseResponse


class ExpenseListOut(BaseModel):
    expenses: List[ExpenseResponse]


# ----------------------------
# REPORT SCHEMAS
# ----------------------------

class CategoryBreakdown(CamelModel):
    category: CategoryResponse
    amount: float
    count: int
    percentage: int


class MonthlyReport(CamelModel):
    month: int
    year: int
    budget: float
    total_expenses: float
    remaining: float
    category_breakdown: List[CategoryBreakdown]
    expenses: List[ExpenseResponse]


class ReportOut(BaseModel):
    report: MonthlyReport


class MonthComparison(CamelModel):
    month: int
    year: int
    budget: float
    expenses: float


class ComparisonOut(BaseModel):
    comparison: List[MonthComparison]


class DashboardStats(CamelModel):
    current_budget: float
    total_expenses: float
    remaining: float
    recent_expenses: List[ExpenseResponse]
    category_breakdown: List[CategoryBreakdown]


class DashboardOut(BaseModel):
    stats: DashboardStats
