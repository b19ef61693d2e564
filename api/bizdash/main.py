import logging
from contextlib import asynccontextmanager
from datetime import date

from fastapi import Depends, FastAPI, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from bizdash.core.config import settings
from bizdash.core.logging_config import configure_logging
from bizdash.core.security import create_access_token, get_password_hash, verify_password
from bizdash.db.queries import new_id, write_transaction
from bizdash.db.session import engine, get_db
from bizdash.db.tables import init_db
from bizdash.routers import dealers, expenses, online_orders, payments, sales
from bizdash.schemas.auth import LoginRequest, RegisterRequest, TokenResponse, UserOut
from bizdash.schemas.dashboard import DealerSalesShare, MonthlySales
from bizdash.services.dashboard import dealer_sales_breakdown, monthly_order_trend
from bizdash.services.deps import get_current_user

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging(settings.log_level)
    init_db(engine)
    logger.info("bizdash API ready (currency %s)", settings.currency)
    yield


app = FastAPI(title="Business Dashboard API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(dealers.router)
app.include_router(sales.router)
app.include_router(online_orders.router)
app.include_router(payments.router)
app.include_router(expenses.router)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    taken = db.execute(
        text(
            """
            SELECT id
            FROM users
            WHERE username = :username OR email = :email
            LIMIT 1
            """
        ),
        {"username": payload.username, "email": payload.email},
    ).first()
    if taken:
        raise HTTPException(status_code=400, detail="Username or email already registered")

    user_id = new_id()
    with write_transaction(db, "Registering user"):
        db.execute(
            text(
                """
                INSERT INTO users (id, username, email, mobile_no, password_hash, is_active)
                VALUES (:id, :username, :email, :mobile_no, :password_hash, :is_active)
                """
            ),
            {
                "id": user_id,
                "username": payload.username,
                "email": payload.email,
                "mobile_no": payload.mobile_no,
                "password_hash": get_password_hash(payload.password),
                "is_active": True,
            },
        )

    logger.info("user %s registered", payload.username)
    return UserOut(id=user_id, username=payload.username, email=payload.email, mobile_no=payload.mobile_no)


@app.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = db.execute(
        text(
            """
            SELECT id, username, password_hash, is_active
            FROM users
            WHERE username = :username
            LIMIT 1
            """
        ),
        {"username": payload.username},
    ).mappings().first()

    if not user or not user["is_active"]:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    if not verify_password(payload.password, user["password_hash"]):
        logger.warning("failed login for %s", payload.username)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    db.execute(
        text("UPDATE users SET last_login_at = CURRENT_TIMESTAMP WHERE id = :id"),
        {"id": user["id"]},
    )
    db.commit()

    token = create_access_token(subject=user["id"], username=user["username"])
    return TokenResponse(access_token=token, user_id=user["id"], username=user["username"])


@app.get("/dashboard/monthly-orders", response_model=list[MonthlySales])
def dashboard_monthly_orders(
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    return monthly_order_trend(online_orders.load_orders(db))


@app.get("/dashboard/dealer-sales", response_model=list[DealerSalesShare])
def dashboard_dealer_sales(
    month: int | None = Query(default=None, ge=1, le=12),
    year: int | None = Query(default=None, ge=2000, le=9999),
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    today = date.today()
    return dealer_sales_breakdown(
        sales.load_sales(db),
        month=month or today.month,
        year=year or today.year,
    )
