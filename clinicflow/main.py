import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from clinicflow.api.routes import metrics, ping, tickets
from clinicflow.core.config import Settings, get_settings
from clinicflow.core.logging import configure_logging, init_tracer, shutdown_tracer
from clinicflow.metrics import metrics_registry
from clinicflow.printers import NetworkEscPosPrinter, Printer, UnconfiguredPrinter
from clinicflow.tickets.printing import PrintReconciler
from clinicflow.tickets.repository import TicketRepository
from clinicflow.tickets.sequencer import Sequencer
from clinicflow.tickets.service import LifecycleEngine

logger = logging.getLogger(__name__)


def _to_asyncpg_dsn(dsn: str) -> str:
    """Ensure a plain PostgreSQL DSN uses the asyncpg driver."""

    if dsn.startswith("postgresql://"):
        return "postgresql+asyncpg://" + dsn[len("postgresql://") :]
    if dsn.startswith("postgres://"):
        return "postgresql+asyncpg://" + dsn[len("postgres://") :]
    return dsn


def build_printer(name: str, host: str | None, port: int, settings: Settings) -> Printer:
    if not host:
        return UnconfiguredPrinter(name)
    return NetworkEscPosPrinter(
        name,
        host,
        port,
        encoding=settings.printer_encoding,
        line_width=settings.printer_line_width,
        connect_timeout=settings.print_timeout_seconds,
        tz=settings.clinic_tz,
    )


def build_lifecycle_engine(settings: Settings, repository: TicketRepository) -> LifecycleEngine:
    return LifecycleEngine(
        repository,
        ticket_printer=build_printer(
            "ticket", settings.ticket_printer_host, settings.ticket_printer_port, settings
        ),
        label_printer=build_printer(
            "label", settings.label_printer_host, settings.label_printer_port, settings
        ),
        sequencer=Sequencer(
            prefix=settings.ticket_prefix,
            width=settings.ticket_number_width,
            tz=settings.clinic_tz,
        ),
        reconciler=PrintReconciler(timeout=settings.print_timeout_seconds, metrics=metrics_registry),
        max_issue_attempts=settings.issue_max_attempts,
        metrics=metrics_registry,
    )


async def _log_printer_status(*printers: Printer) -> None:
    for printer in printers:
        if await printer.check_connection():
            logger.info("%s printer connected", printer.name.capitalize())
        else:
            logger.warning("%s printer is not reachable; printing will be skipped", printer.name.capitalize())


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    configure_logging(settings)
    tracer_provider = init_tracer(settings)

    app.state.tracer_provider = tracer_provider
    app.state.metrics = metrics_registry
    app.state.lifecycle_engine = None
    db_engine = create_async_engine(
        _to_asyncpg_dsn(settings.database_url), echo=settings.database_echo, future=True
    )
    try:
        session_factory = async_sessionmaker(db_engine, expire_on_commit=False)
        repository = TicketRepository(session_factory, engine=db_engine)
        lifecycle_engine = build_lifecycle_engine(settings, repository)
        await lifecycle_engine.ensure_schema()
        await _log_printer_status(lifecycle_engine.ticket_printer, lifecycle_engine.label_printer)
        app.state.lifecycle_engine = lifecycle_engine
    except Exception:
        logger.exception("Ticket service initialisation failed; ticket routes will answer 503")
    try:
        yield
    finally:
        await db_engine.dispose()
        shutdown_tracer(tracer_provider)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.include_router(ping.router)
    app.include_router(metrics.router)
    app.include_router(tickets.router)
    return app


app = create_app()
