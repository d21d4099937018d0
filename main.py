import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request

from config import get_settings
from database import Base, engine
from datasource import DataSource, DataSourceError, SQLDataSource
from filters import TransactionFilters
from periods import parse_date_param
from scheduler import SchedulerManager
from schemas import CategoryIn, ExpenseIn, IncomeIn
from services import (
    CategoryService,
    DashboardService,
    ExpenseService,
    IncomeService,
    RecordNotFound,
)
from sync import SyncCoordinator

logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)


def get_source(request: Request) -> DataSource:
    return request.app.state.source


def get_coordinator(request: Request) -> SyncCoordinator:
    return request.app.state.coordinator


def get_dashboard(
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> DashboardService:
    return DashboardService(coordinator)


def filters_from_request(request: Request) -> TransactionFilters:
    category = request.query_params.get("category") or None
    try:
        date_from = parse_date_param(request.query_params.get("start"))
        date_to = parse_date_param(request.query_params.get("end"))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid date") from exc
    return TransactionFilters(category_id=category, date_from=date_from, date_to=date_to)


async def _write(action):
    try:
        return await action
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except DataSourceError as exc:
        logger.warning(f"write_failed: error={exc.message}")
        raise HTTPException(status_code=502, detail=exc.message) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def create_app(source: Optional[DataSource] = None) -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Expense Dashboard")

    if source is None:
        Base.metadata.create_all(bind=engine)
        source = SQLDataSource()
    app.state.source = source
    app.state.coordinator = SyncCoordinator(source)
    app.state.scheduler = SchedulerManager(app.state.coordinator)

    @app.on_event("startup")
    async def startup_event():
        if settings.seed_categories:
            try:
                await CategoryService(app.state.source).seed_defaults()
            except DataSourceError as exc:
                logger.warning(f"seed_failed: error={exc.message}")
        await app.state.coordinator.start()
        app.state.scheduler.start()

    @app.on_event("shutdown")
    async def shutdown_event():
        app.state.scheduler.stop()
        await app.state.coordinator.aclose()

    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:
    @app.get("/api/status")
    def api_status(dashboard: DashboardService = Depends(get_dashboard)):
        return dashboard.status()

    @app.post("/api/sync")
    async def api_sync(
        coordinator: SyncCoordinator = Depends(get_coordinator),
        dashboard: DashboardService = Depends(get_dashboard),
    ):
        await coordinator.refresh_all()
        return dashboard.status()

    @app.get("/api/categories")
    def api_categories(dashboard: DashboardService = Depends(get_dashboard)):
        return dashboard.categories()

    @app.get("/api/expenses")
    def api_expenses(
        request: Request, dashboard: DashboardService = Depends(get_dashboard)
    ):
        return {"items": dashboard.expenses(filters_from_request(request))}

    @app.get("/api/incomes")
    def api_incomes(dashboard: DashboardService = Depends(get_dashboard)):
        return dashboard.incomes()

    @app.get("/api/dashboard")
    def api_dashboard(
        request: Request, dashboard: DashboardService = Depends(get_dashboard)
    ):
        return dashboard.overview(filters_from_request(request))

    @app.get("/api/analytics")
    def api_analytics(
        request: Request, dashboard: DashboardService = Depends(get_dashboard)
    ):
        return dashboard.analytics(request.query_params.get("range"))

    @app.get("/api/comparison")
    def api_comparison(dashboard: DashboardService = Depends(get_dashboard)):
        return dashboard.comparison()

    @app.post("/api/categories", status_code=201)
    async def create_category(
        payload: CategoryIn, source: DataSource = Depends(get_source)
    ):
        return await _write(CategoryService(source).create(payload))

    @app.put("/api/categories/{category_id}")
    async def update_category(
        category_id: str, payload: CategoryIn, source: DataSource = Depends(get_source)
    ):
        return await _write(CategoryService(source).update(category_id, payload))

    @app.delete("/api/categories/{category_id}", status_code=204)
    async def delete_category(category_id: str, source: DataSource = Depends(get_source)):
        await _write(CategoryService(source).delete(category_id))

    @app.post("/api/expenses", status_code=201)
    async def create_expense(payload: ExpenseIn, source: DataSource = Depends(get_source)):
        return await _write(ExpenseService(source).create(payload))

    @app.put("/api/expenses/{expense_id}")
    async def update_expense(
        expense_id: str, payload: ExpenseIn, source: DataSource = Depends(get_source)
    ):
        return await _write(ExpenseService(source).update(expense_id, payload))

    @app.delete("/api/expenses/{expense_id}", status_code=204)
    async def delete_expense(expense_id: str, source: DataSource = Depends(get_source)):
        await _write(ExpenseService(source).delete(expense_id))

    @app.post("/api/incomes", status_code=201)
    async def create_income(payload: IncomeIn, source: DataSource = Depends(get_source)):
        return await _write(IncomeService(source).create(payload))

    @app.put("/api/incomes/{income_id}")
    async def update_income(
        income_id: str, payload: IncomeIn, source: DataSource = Depends(get_source)
    ):
        return await _write(IncomeService(source).update(income_id, payload))

    @app.delete("/api/incomes/{income_id}", status_code=204)
    async def delete_income(income_id: str, source: DataSource = Depends(get_source)):
        await _write(IncomeService(source).delete(income_id))


app = create_app()
