import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.core.whitelist import WhitelistCache
from app.main import create_app
from app.services.grant_service import GrantService
from app.services.ledger_service import GrantLedger
from app.tests.fakes import FakeChain, TREASURY, whitelist_transport


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        treasury_address=TREASURY,
        treasury_private_key=None,
        database_url="sqlite+pysqlite:///:memory:",
        log_level="WARNING",
    )


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def ledger():
    led = GrantLedger.from_url("sqlite+pysqlite:///:memory:")
    try:
        yield led
    finally:
        led.dispose()


@pytest.fixture
def whitelist():
    return WhitelistCache("https://whitelist.test/api/whitelist", 300, transport=whitelist_transport())


@pytest.fixture
def grant_service(ledger, chain):
    return GrantService(ledger, chain, treasury_address=TREASURY, fee_percent=5)


@pytest.fixture
def grants_app(settings, chain, ledger, whitelist):
    return create_app(settings, chain=chain, ledger=ledger, whitelist=whitelist)


@pytest.fixture
def client(grants_app):
    return TestClient(grants_app)
