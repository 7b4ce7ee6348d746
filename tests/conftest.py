"""Shared test fixtures."""

import pytest
from sqlalchemy.orm import Session

from c2sync.config.settings import Settings
from c2sync.db.engine import create_engine, create_tables, drop_tables, get_session
from c2sync.sources.base import ConnectionInfo
from c2sync.sync.orchestrator import SyncOrchestrator
from c2sync.utils.exceptions import ConnectivityError
from c2sync.utils.ordering import natural_key


class FakeConnectionProvider:
    """Connection provider with configurable reachability."""

    def __init__(self, connection_ids: tuple[str, ...] = ("C1",), reachable: bool = True) -> None:
        self.connection_ids = set(connection_ids)
        self.reachable = reachable
        self.test_calls = 0

    async def get_connection(self, connection_id: str) -> ConnectionInfo:
        if connection_id not in self.connection_ids:
            raise ConnectivityError(f"Component2020 connection {connection_id} not found", connection_id)
        return ConnectionInfo(id=connection_id, name=f"conn-{connection_id}", source_path="memory://")

    async def test_connection(self, connection_id: str) -> bool:
        self.test_calls += 1
        return self.reachable


class InMemorySource:
    """Snapshot and delta reader over in-memory tables keyed by source entity."""

    def __init__(self, tables: dict[str, list[dict]] | None = None) -> None:
        self.tables: dict[str, list[dict]] = tables or {}
        self.delta_calls: list[tuple[str, str | None]] = []
        self.snapshot_calls: list[str] = []
        # Called with the row index before each row is yielded
        self.on_row = None

    async def read_snapshot(self, connection: ConnectionInfo, source_entity: str):
        self.snapshot_calls.append(source_entity)
        for index, row in enumerate(list(self.tables.get(source_entity, []))):
            if self.on_row is not None:
                await self.on_row(index)
            yield dict(row)

    async def read_delta(self, connection: ConnectionInfo, source_entity: str, last_key: str | None):
        self.delta_calls.append((source_entity, last_key))
        rows = sorted(self.tables.get(source_entity, []), key=lambda r: natural_key(str(r["id"])))
        index = 0
        for row in rows:
            if last_key is not None and natural_key(str(row["id"])) <= natural_key(last_key):
                continue
            if self.on_row is not None:
                await self.on_row(index)
            index += 1
            yield dict(row)


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Create test settings backed by a file SQLite database."""
    return Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'c2sync-test.db'}",
        connection_id=None,
        log_level="INFO",
        max_retries=2,
        retry_delay=0,
        stale_run_timeout_minutes=0,
        scheduler_poll_seconds=1,
    )


@pytest.fixture
def test_engine(test_settings):
    """Create test database engine with tables."""
    engine = create_engine(test_settings)
    create_tables(engine)
    yield engine
    drop_tables(engine)
    engine.dispose()


@pytest.fixture
def test_session(test_engine) -> Session:
    """Create test database session."""
    with get_session(test_engine) as session:
        yield session


@pytest.fixture
def fake_provider() -> FakeConnectionProvider:
    return FakeConnectionProvider()


@pytest.fixture
def source() -> InMemorySource:
    return InMemorySource()


@pytest.fixture
def orchestrator(test_engine, test_settings, fake_provider, source) -> SyncOrchestrator:
    """Orchestrator wired to the in-memory source."""
    return SyncOrchestrator(
        engine=test_engine,
        settings=test_settings,
        connection_provider=fake_provider,
        snapshot_reader=source,
        delta_reader=source,
    )


@pytest.fixture
def sample_units() -> list[dict]:
    """Three Unit rows keyed U1..U3."""
    return [
        {"id": "U1", "name": "Piece", "symbol": "pcs", "code": "796"},
        {"id": "U2", "name": "Kilogram", "symbol": "kg", "code": "166"},
        {"id": "U3", "name": "Meter", "symbol": "m", "code": "006"},
    ]


@pytest.fixture
def full_dataset() -> dict[str, list[dict]]:
    """A small consistent dataset covering every scope."""
    return {
        "Units": [
            {"id": 1, "name": "Piece", "symbol": "pcs"},
            {"id": 2, "name": "Ohm", "symbol": "Ohm"},
        ],
        "Currencies": [{"id": 1, "name": "Euro", "symbol": "€", "code": "eur", "rate": "1.0"}],
        "Manufacturers": [{"id": 1, "name": "Vishay", "full_name": "Vishay Intertechnology"}],
        "BodyTypes": [{"id": 1, "name": "0603", "pins": 2, "smt": True}],
        "TechnicalParameters": [{"id": 1, "name": "Resistance", "symbol": "R", "unit_id": 2}],
        "ParameterSets": [{"id": 1, "name": "Resistor", "p0_id": 1}],
        "Symbols": [{"id": 1, "name": "R", "symbol": "R"}],
        "Providers": [
            {"id": 1, "name": "Acme Components", "inn": "7701234567", "type": "Supplier"},
            {"id": 2, "name": "Globex", "type": "Customer"},
        ],
        "Items": [
            {"id": 10, "code": "R-0603-10K", "name": "Resistor 10k 0603", "unit_id": 1},
            {"id": 11, "code": "C-0603-100N", "name": "Capacitor 100n 0603", "unit_id": 1},
        ],
        "Products": [{"id": 100, "name": "Controller board", "part_number": "CB-01"}],
        "Bom": [
            {"id": 1, "product_id": 100, "component_id": 10, "quantity": "4", "position_no": 1},
            {"id": 2, "product_id": 100, "component_id": 11, "quantity": "2", "position_no": 2},
        ],
        "CustomerOrders": [
            {"id": 1, "number": "CO-2024-001", "data": "2024-05-01", "customer_id": 2, "state": "Open"}
        ],
    }
