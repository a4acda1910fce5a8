import logging
import time
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from auth import TokenClaims, TokenService
from backup import BackupService
from config import Settings, get_settings, load_financial_data, load_revoked_tokens
from errors import (
    Conflict,
    Forbidden,
    InvalidFormat,
    NotFound,
    ServiceError,
    Unauthorized,
)
from models import DEFAULT_PAGE_SIZE, parse_iso_date
from scheduler import SchedulerManager
from schemas import CategoryIn, CreatedOut, TokenOut, TransactionIn
from services import CategoryService, StatisticsService, TransactionService

logger = logging.getLogger(__name__)

STATUS_CODES = (
    (InvalidFormat, 400),
    (Unauthorized, 401),
    (Forbidden, 403),
    (NotFound, 404),
    (Conflict, 409),
)

router = APIRouter()


def get_transaction_service(request: Request) -> TransactionService:
    return request.app.state.transactions


def get_category_service(request: Request) -> CategoryService:
    return request.app.state.categories


def get_statistics_service(request: Request) -> StatisticsService:
    return request.app.state.statistics


def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


def get_claims(
    request: Request, tokens: TokenService = Depends(get_token_service)
) -> TokenClaims:
    return tokens.check(request.headers.get("Authorization"))


def parse_date_param(name: str, value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return parse_iso_date(value)
    except ValueError as exc:
        raise InvalidFormat(f"invalid {name} date format: {value!r}") from exc


@router.get("/api/health")
def health():
    return {"status": "ok"}


@router.get("/api/statistics")
def get_statistics(
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = Query(None),
    claims: TokenClaims = Depends(get_claims),
    statistics: StatisticsService = Depends(get_statistics_service),
):
    result = statistics.get_statistics(
        claims.id, parse_date_param("from", from_), parse_date_param("to", to)
    )
    return result.to_dict()


@router.get("/api/transactions")
def list_transactions(
    category: list[str] = Query(default=[]),
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = Query(None),
    page: int = Query(1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, alias="pageSize"),
    claims: TokenClaims = Depends(get_claims),
    transactions: TransactionService = Depends(get_transaction_service),
):
    result = transactions.list(
        claims.id,
        categories=category,
        from_date=parse_date_param("from", from_),
        to_date=parse_date_param("to", to),
        page=page,
        page_size=page_size,
    )
    return result.to_dict()


@router.post("/api/transactions", status_code=201, response_model=CreatedOut)
def create_transaction(
    payload: TransactionIn,
    claims: TokenClaims = Depends(get_claims),
    transactions: TransactionService = Depends(get_transaction_service),
):
    txn = transactions.create(claims.id, payload)
    return CreatedOut(id=txn.id)


@router.get("/api/transactions/{transaction_id}")
def get_transaction(
    transaction_id: str,
    claims: TokenClaims = Depends(get_claims),
    transactions: TransactionService = Depends(get_transaction_service),
):
    return transactions.get(claims.id, transaction_id).to_dict()


@router.put("/api/transactions/{transaction_id}")
def update_transaction(
    transaction_id: str,
    payload: TransactionIn,
    claims: TokenClaims = Depends(get_claims),
    transactions: TransactionService = Depends(get_transaction_service),
):
    return transactions.update(claims.id, transaction_id, payload).to_dict()


@router.delete("/api/transactions/{transaction_id}", status_code=204)
def delete_transaction(
    transaction_id: str,
    claims: TokenClaims = Depends(get_claims),
    transactions: TransactionService = Depends(get_transaction_service),
):
    transactions.delete(claims.id, transaction_id)
    return Response(status_code=204)


@router.get("/api/categories")
def list_categories(
    name: str = Query(""),
    claims: TokenClaims = Depends(get_claims),
    categories: CategoryService = Depends(get_category_service),
):
    return [category.to_dict() for category in categories.list_all(claims.id, name)]


@router.post("/api/categories", status_code=201)
def create_category(
    payload: CategoryIn,
    claims: TokenClaims = Depends(get_claims),
    categories: CategoryService = Depends(get_category_service),
):
    return categories.create(claims.id, payload).to_dict()


def _issue_token(
    name: str, is_teacher: bool, claims: TokenClaims, tokens: TokenService
) -> TokenOut:
    if not name:
        raise InvalidFormat("empty name")
    return TokenOut(token=tokens.generate_token(claims, name, is_teacher))


@router.post("/createToken", response_model=TokenOut)
def create_token(
    name: str = Query(""),
    claims: TokenClaims = Depends(get_claims),
    tokens: TokenService = Depends(get_token_service),
):
    return _issue_token(name, False, claims, tokens)


@router.post("/createTeacherToken", response_model=TokenOut)
def create_teacher_token(
    name: str = Query(""),
    claims: TokenClaims = Depends(get_claims),
    tokens: TokenService = Depends(get_token_service),
):
    return _issue_token(name, True, claims, tokens)


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    status_code = next(
        (code for error_cls, code in STATUS_CODES if isinstance(exc, error_cls)),
        500,
    )
    message = f"{request.method} {request.url.path}: {exc}"
    if status_code >= 500:
        logger.error(message)
    else:
        logger.warning(message)
    return JSONResponse(status_code=status_code, content={"error": str(exc)})


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=400, content={"error": "request is invalid"})


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": "internal server error"})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    financial_data = load_financial_data(settings.financial_data_path)
    transactions = TransactionService(
        financial_data.transactions, timezone=settings.timezone
    )
    categories = CategoryService(financial_data.categories)
    statistics = StatisticsService(transactions, timezone=settings.timezone)
    tokens = TokenService(
        settings.secret_key,
        revoked_tokens=load_revoked_tokens(settings.revoked_tokens_path),
        created_tokens_path=settings.created_tokens_path,
    )
    backup = BackupService(settings.data_dir, timezone=settings.timezone)
    backup.register(transactions)
    backup.register(categories)
    scheduler_manager = SchedulerManager(settings, transactions, backup)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.scheduler_enabled:
            scheduler_manager.start()
        try:
            yield
        finally:
            scheduler_manager.stop()

    app = FastAPI(title="Spendings", lifespan=lifespan)
    app.state.settings = settings
    app.state.transactions = transactions
    app.state.categories = categories
    app.state.statistics = statistics
    app.state.tokens = tokens
    app.state.backup = backup
    app.state.scheduler = scheduler_manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"request: method={request.method} path={request.url.path} "
            f"status={response.status_code} duration_ms={elapsed_ms:.1f} "
            f"user_agent={request.headers.get('user-agent', '')!r}"
        )
        return response

    return app
