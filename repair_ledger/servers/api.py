"""
Ledger HTTP API

FastAPI application exposing product intake, repair tracking, warranty
status and reports. Business rules live in repair_ledger.compute; the
handlers load a snapshot, call the computation and persist the outcome.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from repair_ledger import __version__
from repair_ledger.config import LedgerConfig, config
from repair_ledger.compute.repair_status import transition, validate_initial_status
from repair_ledger.compute.reports import build_summary, find_expiring
from repair_ledger.compute.warranty import WarrantyEvaluator
from repair_ledger.db import LedgerDatabase, LedgerRepository
from repair_ledger.models import (
    ExpiringProductResponse,
    ProductCreateRequest,
    ProductResponse,
    RepairCreateRequest,
    RepairResponse,
    RepairStatus,
    RepairStatusUpdateRequest,
    SummaryReportResponse,
    WarrantyWindow,
)

logger = logging.getLogger(__name__)

VALIDATION_TITLE = "One or more validation errors occurred."
VALIDATION_TYPE = "https://tools.ietf.org/html/rfc9110#section-15.5.1"


class LedgerValidationError(Exception):
    """Raised when a request is well-formed but violates a ledger rule."""

    def __init__(self, errors: Dict[str, List[str]]):
        super().__init__("; ".join(f"{field}: {', '.join(messages)}" for field, messages in errors.items()))
        self.errors = errors


def validation_problem(errors: Dict[str, List[str]], instance: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "type": VALIDATION_TYPE,
            "title": VALIDATION_TITLE,
            "status": status.HTTP_400_BAD_REQUEST,
            "errors": errors,
            "instance": instance
        }
    )


async def handle_ledger_validation(request: Request, exc: LedgerValidationError) -> JSONResponse:
    return validation_problem(exc.errors, request.url.path)


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors: Dict[str, List[str]] = {}
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(location) or "body"
        errors.setdefault(field, []).append(error.get("msg", "Invalid input."))
    return validation_problem(errors, request.url.path)


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled exception - path={request.url.path}, error={str(exc)}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "title": "An unexpected error occurred.",
            "status": status.HTTP_500_INTERNAL_SERVER_ERROR,
            "detail": "Something went wrong while processing the request.",
            "instance": request.url.path
        }
    )


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_repository(request: Request) -> Iterator[LedgerRepository]:
    database: LedgerDatabase = request.app.state.database
    with database.session_scope() as session:
        yield LedgerRepository(session)


def get_evaluator(request: Request) -> WarrantyEvaluator:
    return request.app.state.evaluator


def get_settings(request: Request) -> LedgerConfig:
    return request.app.state.settings


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _product_or_404(repository: LedgerRepository, product_id: int):
    product = repository.get_product(product_id)
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Product {product_id} not found")
    return product


def _repair_or_404(repository: LedgerRepository, repair_id: int):
    repair = repository.get_repair(repair_id)
    if repair is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Repair {repair_id} not found")
    return repair


# =============================================================================
# PRODUCTS
# =============================================================================

products_router = APIRouter(prefix="/products", tags=["products"])

DUPLICATE_SERIAL = {"serial": ["Serial must be unique."]}


@products_router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductCreateRequest,
    response: Response,
    repository: LedgerRepository = Depends(get_repository),
    evaluator: WarrantyEvaluator = Depends(get_evaluator)
) -> ProductResponse:
    if repository.serial_exists(payload.serial):
        raise LedgerValidationError(DUPLICATE_SERIAL)

    try:
        product = repository.add_product(payload, evaluator.default_months)
        repository.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent insert of the same serial
        repository.session.rollback()
        raise LedgerValidationError(DUPLICATE_SERIAL)

    logger.info(f"Created product - id={product.id}, serial={product.serial}")
    response.headers["Location"] = f"/products/{product.id}"
    return ProductResponse.model_validate(product)


@products_router.get("", response_model=List[ProductResponse])
def list_products(
    q: Optional[str] = None,
    repository: LedgerRepository = Depends(get_repository)
) -> List[ProductResponse]:
    return [ProductResponse.model_validate(product) for product in repository.find_products(q)]


@products_router.get("/expiring", response_model=List[ExpiringProductResponse])
def list_expiring_products(
    days: Optional[int] = Query(default=None),
    repository: LedgerRepository = Depends(get_repository),
    evaluator: WarrantyEvaluator = Depends(get_evaluator),
    settings: LedgerConfig = Depends(get_settings)
) -> List[ExpiringProductResponse]:
    threshold = settings.expiring_window_days if days is None else days
    if threshold <= 0:
        raise LedgerValidationError({"days": ["Days must be greater than zero."]})

    return find_expiring(repository.product_histories(), threshold, evaluator.today(), evaluator)


@products_router.get("/{product_id}", response_model=ProductResponse)
def get_product(product_id: int, repository: LedgerRepository = Depends(get_repository)) -> ProductResponse:
    return ProductResponse.model_validate(_product_or_404(repository, product_id))


@products_router.get("/{product_id}/in-warranty", response_model=WarrantyWindow)
def get_warranty_status(
    product_id: int,
    repository: LedgerRepository = Depends(get_repository),
    evaluator: WarrantyEvaluator = Depends(get_evaluator)
) -> WarrantyWindow:
    history = repository.history(_product_or_404(repository, product_id))
    return evaluator.evaluate(history.product, history.repairs, evaluator.today())


@products_router.get("/{product_id}/repairs", response_model=List[RepairResponse])
def list_product_repairs(
    product_id: int,
    repository: LedgerRepository = Depends(get_repository)
) -> List[RepairResponse]:
    _product_or_404(repository, product_id)
    return [RepairResponse.model_validate(repair) for repair in repository.list_repairs(product_id=product_id)]


@products_router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(product_id: int, repository: LedgerRepository = Depends(get_repository)) -> Response:
    product = _product_or_404(repository, product_id)
    repository.delete_product(product)
    repository.session.commit()
    logger.info(f"Deleted product - id={product_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# REPAIRS
# =============================================================================

repairs_router = APIRouter(prefix="/repairs", tags=["repairs"])


@repairs_router.post("", response_model=RepairResponse, status_code=status.HTTP_201_CREATED)
def create_repair(
    payload: RepairCreateRequest,
    response: Response,
    repository: LedgerRepository = Depends(get_repository)
) -> RepairResponse:
    _product_or_404(repository, payload.product_id)

    error = validate_initial_status(payload.status)
    if error:
        raise LedgerValidationError({"status": [error]})

    repair = repository.add_repair(payload, utc_now())
    repository.session.commit()

    logger.info(
        f"Opened repair - id={repair.id}, product_id={repair.product_id}, "
        f"consumer_opted_for_repair={repair.consumer_opted_for_repair}"
    )
    response.headers["Location"] = f"/repairs/{repair.id}"
    return RepairResponse.model_validate(repair)


@repairs_router.get("", response_model=List[RepairResponse])
def list_repairs(
    status_filter: Optional[RepairStatus] = Query(default=None, alias="status"),
    repository: LedgerRepository = Depends(get_repository)
) -> List[RepairResponse]:
    return [RepairResponse.model_validate(repair) for repair in repository.list_repairs(status=status_filter)]


@repairs_router.get("/{repair_id}", response_model=RepairResponse)
def get_repair(repair_id: int, repository: LedgerRepository = Depends(get_repository)) -> RepairResponse:
    return RepairResponse.model_validate(_repair_or_404(repository, repair_id))


@repairs_router.patch("/{repair_id}", response_model=RepairResponse)
def update_repair_status(
    repair_id: int,
    payload: RepairStatusUpdateRequest,
    repository: LedgerRepository = Depends(get_repository)
) -> RepairResponse:
    repair = _repair_or_404(repository, repair_id)

    result = transition(repair.status, payload.status, utc_now(), repair.closed_at)
    if not result.ok:
        logger.info(
            f"Rejected repair transition - id={repair_id}, current={RepairStatus(repair.status).value}, "
            f"requested={payload.status.value}, error_code={result.error_code}"
        )
        raise LedgerValidationError({"status": [result.message]})

    repair.status = result.status
    repair.closed_at = result.closed_at
    repository.session.commit()

    logger.info(f"Repair transitioned - id={repair_id}, status={result.status.value}")
    return RepairResponse.model_validate(repair)


# =============================================================================
# REPORTS
# =============================================================================

reports_router = APIRouter(prefix="/reports", tags=["reports"])


@reports_router.get("/summary", response_model=SummaryReportResponse)
def get_summary(
    repository: LedgerRepository = Depends(get_repository),
    evaluator: WarrantyEvaluator = Depends(get_evaluator),
    settings: LedgerConfig = Depends(get_settings)
) -> SummaryReportResponse:
    repairs = [RepairResponse.model_validate(repair) for repair in repository.list_repairs()]
    return build_summary(
        repository.product_histories(),
        repairs,
        utc_now(),
        evaluator,
        settings.expiring_window_days
    )


# =============================================================================
# APPLICATION
# =============================================================================

def create_app(
    database: Optional[LedgerDatabase] = None,
    evaluator: Optional[WarrantyEvaluator] = None,
    settings: Optional[LedgerConfig] = None,
    diagnostics: bool = False
) -> FastAPI:
    """
    Build the API application.

    Args:
        database: Storage to use (defaults to the configured database URL)
        evaluator: Warranty evaluator (defaults to the configured warranty options)
        settings: Configuration (defaults to the global config)
        diagnostics: Mount /diagnostics/throw for exercising the error handler
    """
    settings = settings or config
    database = database or LedgerDatabase(settings.database_url)
    database.create_schema()

    app = FastAPI(title="Warranty Repair Ledger", version=__version__)
    app.state.settings = settings
    app.state.database = database
    app.state.evaluator = evaluator or WarrantyEvaluator(settings.warranty)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(LedgerValidationError, handle_ledger_validation)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected)

    app.include_router(products_router)
    app.include_router(repairs_router)
    app.include_router(reports_router)

    @app.get("/health")
    async def health():
        """Basic health check endpoint."""
        return {"status": "healthy"}

    if diagnostics:
        @app.get("/diagnostics/throw", include_in_schema=False)
        async def diagnostics_throw():
            raise RuntimeError("Simulated failure for diagnostics.")

    logger.info(
        f"Ledger API initialized - default_months={settings.warranty.default_months}, "
        f"repair_extension_months={settings.warranty.repair_extension_months}"
    )
    return app
