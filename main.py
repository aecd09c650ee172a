from fastapi import FastAPI, Depends, Query, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy import func
from contextlib import asynccontextmanager, contextmanager
from datetime import datetime, timedelta
from typing import Optional
import calendar
import logging
import os

from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

import csv
from io import StringIO

from database import engine, SessionLocal
import models
from models import User, Category, Budget, Expense
from reporting import (
    MAX_QUERY_YEAR,
    current_month,
    get_budget,
    query_expenses,
    get_report,
    get_comparison,
    get_dashboard_stats,
)
from schemas import (
    UserCreate,
    UserLogin,
    Token,
    RegisterOut,
    CategoryListOut,
    BudgetCreate,
    BudgetOut,
    ExpenseCreate,
    ExpenseOut,
    ExpenseListOut,
    ReportOut,
    ComparisonOut,
    DashboardOut,
)
from seed import seed_categories


logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

models.Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db = SessionLocal()
    try:
        seed_categories(db)
    finally:
        db.close()
    yield


app = FastAPI(title="PocketPro", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",")],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# ----------------------------
# ERRORS
# ----------------------------

def first_error_message(errors) -> str:
    if not errors:
        return "Invalid request"

    error = errors[0]
    ctx = error.get("ctx") or {}
    # our own validators: surface the message as written
    if error.get("type") == "value_error" and "error" in ctx:
        return str(ctx["error"])

    msg = error.get("msg", "Invalid request")
    loc = error.get("loc") or ()
    if len(loc) > 1:
        return f"{loc[-1]}: {msg}"
    return msg


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": first_error_message(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@contextmanager
def store_errors(db: Session, message: str):
    try:
        yield
    except SQLAlchemyError:
        db.rollback()
        logger.exception(message)
        raise HTTPException(status_code=500, detail=message)


# ----------------------------
# AUTH
# ----------------------------

SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    logger.warning("SECRET_KEY is not set; using the development key")
    SECRET_KEY = "pocketpro-dev-secret"
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))


pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

def hash_password(password: str):
    return pwd_context.hash(password)

def verify_password(password: str, hashed: str):
    return pwd_context.verify(password, hashed)

def create_access_token(data: dict):
    to_encode = dict(data)
    to_encode["exp"] = datetime.utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

def get_current_user_id(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> int:
    unauthorized = HTTPException(
        status_code=401,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise unauthorized

    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id = int(payload.get("sub"))
    except (JWTError, TypeError, ValueError):
        raise unauthorized

    if not db.query(User.id).filter(User.id == user_id).first():
        raise unauthorized

    return user_id

@app.post("/api/auth/register", response_model=RegisterOut, status_code=201)
def register(user: UserCreate, db: Session = Depends(get_db)):
    normalized_email = user.email.strip().lower()

    if db.query(User).filter(
        func.lower(User.email) == normalized_email
    ).first():
        raise HTTPException(
            status_code=409,
            detail="User with this email already exists"
        )

    new_user = User(
        name=user.name,
        email=normalized_email,
        hashed_password=hash_password(user.password)
    )
    with store_errors(db, "Failed to register user"):
        db.add(new_user)
        db.commit()
        db.refresh(new_user)

    logger.info("Registered user %s", new_user.id)
    return {"user": new_user}

@app.post("/api/auth/login", response_model=Token)
def login(user: UserLogin, db: Session = Depends(get_db)):
    db_user = db.query(User).filter(
        func.lower(User.email) == user.email.lower()
    ).first()

    if not db_user or not verify_password(user.password, db_user.hashed_password):
        raise HTTPException(
            status_code=401,
            detail="Invalid email or password"
        )

    token = create_access_token({"sub": str(db_user.id)})
    return {
        "access_token": token,
        "token_type": "bearer",
        "user_name": db_user.name
    }


# ----------------------------
# CATEGORIES
# ----------------------------

@app.get("/api/categories", response_model=CategoryListOut)
def list_categories(db: Session = Depends(get_db)):
    return {"categories": db.query(Category).order_by(Category.name).all()}


# ----------------------------
# BUDGET
# ----------------------------

@app.get("/api/budget", response_model=BudgetOut)
def get_current_budget(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    month, year = current_month()
    return {"budget": get_budget(db, user_id, month, year)}

@app.post("/api/budget", response_model=BudgetOut, status_code=201)
def set_budget(
    data: BudgetCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    with store_errors(db, "Failed to set budget"):
        budget = get_budget(db, user_id, data.month, data.year)
        if budget:
            budget.amount = data.amount
            db.commit()
        else:
            budget = Budget(
                user_id=user_id,
                month=data.month,
                year=data.year,
                amount=data.amount
            )
            db.add(budget)
            try:
                db.commit()
            except IntegrityError:
                # another request created the row first; last writer wins
                db.rollback()
                budget = db.query(Budget).filter(
                    Budget.user_id == user_id,
                    Budget.month == data.month,
                    Budget.year == data.year
                ).one()
                budget.amount = data.amount
                db.commit()
        db.refresh(budget)

    logger.info("Budget for %02d/%d set to %s by user %s", data.month, data.year, data.amount, user_id)
    return {"budget": budget}


# ----------------------------
# EXPENSES
# ----------------------------

def get_owned_expense(db: Session, expense_id: int, user_id: int) -> Expense:
    expense = db.query(Expense).filter(
        Expense.id == expense_id,
        Expense.user_id == user_id
    ).first()

    if not expense:
        raise HTTPException(status_code=404, detail="Expense not found")
    return expense

def ensure_category(db: Session, category_id: int):
    if not db.get(Category, category_id):
        raise HTTPException(status_code=404, detail="Category not found")

@app.get("/api/expenses", response_model=ExpenseListOut)
def list_expenses(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1, le=MAX_QUERY_YEAR),
    category_id: Optional[int] = Query(None, alias="categoryId"),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    with store_errors(db, "Failed to fetch expenses"):
        expenses = query_expenses(db, user_id, month, year, category_id, limit)
    return {"expenses": expenses}

@app.post("/api/expenses", response_model=ExpenseOut, status_code=201)
def create_expense(
    data: ExpenseCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    ensure_category(db, data.category_id)

    expense = Expense(user_id=user_id, **data.model_dump())
    with store_errors(db, "Failed to create expense"):
        db.add(expense)
        db.commit()
        db.refresh(expense)

    logger.info("Created expense %s for user %s", expense.id, user_id)
    return {"expense": expense}

@app.get("/api/expenses/{expense_id}", response_model=ExpenseOut)
def get_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    return {"expense": get_owned_expense(db, expense_id, user_id)}

@app.put("/api/expenses/{expense_id}", response_model=ExpenseOut)
def update_expense(
    expense_id: int,
    data: ExpenseCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    existing = get_owned_expense(db, expense_id, user_id)
    ensure_category(db, data.category_id)

    with store_errors(db, "Failed to update expense"):
        for key, value in data.model_dump().items():
            setattr(existing, key, value)
        db.commit()
        db.refresh(existing)

    logger.info("Updated expense %s for user %s", existing.id, user_id)
    return {"expense": existing}

@app.delete("/api/expenses/{expense_id}")
def delete_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    existing = get_owned_expense(db, expense_id, user_id)

    with store_errors(db, "Failed to delete expense"):
        db.delete(existing)
        db.commit()

    logger.info("Deleted expense %s for user %s", expense_id, user_id)
    return {"message": "Expense deleted successfully"}


# ----------------------------
# DASHBOARD & REPORTS
# ----------------------------

@app.get("/api/dashboard", response_model=DashboardOut)
def dashboard(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    with store_errors(db, "Failed to fetch dashboard data"):
        stats = get_dashboard_stats(db, user_id)
    return {"stats": stats}

@app.get("/api/reports", response_model=ReportOut)
def monthly_report(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1, le=MAX_QUERY_YEAR),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    now_month, now_year = current_month()
    with store_errors(db, "Failed to generate report"):
        report = get_report(db, user_id, month or now_month, year or now_year)
    return {"report": report}

@app.get("/api/reports/compare", response_model=ComparisonOut)
def compare_months(
    months: int = Query(6, ge=1, le=60),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    with store_errors(db, "Failed to generate comparison"):
        comparison = get_comparison(db, user_id, months)
    return {"comparison": comparison}

@app.get("/api/reports/export")
def export_report(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1, le=MAX_QUERY_YEAR),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Export one month's expenses as CSV
    """
    now_month, now_year = current_month()
    month = month or now_month
    year = year or now_year

    with store_errors(db, "Failed to export expenses"):
        expenses = query_expenses(db, user_id, month, year)

    output = StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL)

    writer.writerow(["Date", "Category", "Description", "Amount"])

    for e in expenses:
        writer.writerow([
            e.date.isoformat(),
            e.category.name,
            e.description or "",
            e.amount
        ])

    output.seek(0)

    return StreamingResponse(
        output,
        media_type="text/csv",
        headers={
            "Content-Disposition": (
                f"attachment; filename=expenses-{calendar.month_name[month]}-{year}.csv"
            )
        }
    )
