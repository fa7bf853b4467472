from datetime import timezone
from zoneinfo import ZoneInfo

from clinicflow.core.config import Settings
from clinicflow.core.logging import configure_logging, logger_levels, parse_headers
from clinicflow.main import _to_asyncpg_dsn, build_lifecycle_engine, build_printer
from clinicflow.printers import NetworkEscPosPrinter, UnconfiguredPrinter


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def test_settings_defaults(monkeypatch):
    for name in ("CLINIC_TIMEZONE", "TICKET_PREFIX", "ISSUE_MAX_ATTEMPTS", "TICKET_PRINTER_HOST"):
        monkeypatch.delenv(name, raising=False)

    settings = _settings()

    assert settings.ticket_prefix == "G"
    assert settings.issue_max_attempts == 3
    assert settings.print_timeout_seconds == 5.0
    assert settings.printer_encoding == "cp850"
    assert settings.ticket_printer_host is None
    assert settings.clinic_tz is timezone.utc


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("CLINIC_TIMEZONE", "America/Sao_Paulo")
    monkeypatch.setenv("LABEL_PRINTER_HOST", "10.0.0.7")

    settings = _settings()

    assert settings.clinic_tz == ZoneInfo("America/Sao_Paulo")
    assert settings.label_printer_host == "10.0.0.7"


def test_parse_headers_skips_malformed_items():
    assert parse_headers("api-key=abc, tenant = clinic ,broken,=x") == {"api-key": "abc", "tenant": "clinic"}
    assert parse_headers(None) == {}


def test_plain_postgres_dsn_uses_asyncpg():
    assert _to_asyncpg_dsn("postgresql://u:p@db/clinic") == "postgresql+asyncpg://u:p@db/clinic"
    assert _to_asyncpg_dsn("postgres://u:p@db/clinic") == "postgresql+asyncpg://u:p@db/clinic"
    assert _to_asyncpg_dsn("sqlite+aiosqlite:///:memory:") == "sqlite+aiosqlite:///:memory:"


def test_build_printer_depends_on_host():
    settings = _settings(print_timeout_seconds=2.0)

    missing = build_printer("label", None, 9100, settings)
    network = build_printer("ticket", "192.168.0.50", 9100, settings)

    assert isinstance(missing, UnconfiguredPrinter)
    assert isinstance(network, NetworkEscPosPrinter)
    assert network.name == "ticket"


def test_build_lifecycle_engine_wires_printers():
    settings = _settings(ticket_printer_host="192.168.0.50")

    engine = build_lifecycle_engine(settings, repository=object())

    assert isinstance(engine.ticket_printer, NetworkEscPosPrinter)
    assert isinstance(engine.label_printer, UnconfiguredPrinter)


def test_logger_levels_quiet_drivers_and_follow_settings():
    levels = logger_levels(_settings(log_level="debug", printer_log_level="warning"))

    assert levels["clinicflow"] == "DEBUG"
    assert levels["clinicflow.printers"] == "WARNING"
    assert levels["sqlalchemy.engine"] == "WARNING"
    assert levels["aiosqlite"] == "WARNING"
    assert levels["asyncio"] == "WARNING"
    assert logger_levels(_settings(database_echo=True))["sqlalchemy.engine"] == "INFO"


def test_configure_logging_applies_logger_levels(monkeypatch):
    captured: dict[str, object] = {}
    monkeypatch.setattr("clinicflow.core.logging.dictConfig", lambda config: captured.update(config))
    settings = _settings(log_level="bogus")

    logger = configure_logging(settings)

    assert logger.name == "clinicflow"
    assert captured["loggers"]["clinicflow"] == {"level": "INFO"}
    assert captured["formatters"]["default"]["format"] == settings.log_format
    assert captured["root"]["level"] == "WARNING"
