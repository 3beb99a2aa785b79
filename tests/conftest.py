"""
Pytest configuration and fixtures for the PassKit backend tests.

Provides an isolated database, throwaway signing certificates and a
PassService wired to both.
"""
import sys
import pathlib
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from passkit.db import Base  # noqa: E402
from passkit import models  # noqa: E402,F401  (registers models with Base)
from passkit.services.pass_assets import StaticAssetSource  # noqa: E402
from passkit.services.pass_service import PassService  # noqa: E402
from passkit.services.pass_trust_store import PassCertificateTrustStore  # noqa: E402
from tests.helpers.certificates import (  # noqa: E402
    generate_key,
    make_pass_certificate,
    make_wwdr,
    write_signing_files,
)
from tests.helpers.pipeline import (  # noqa: E402
    ICON_2X_BYTES,
    ICON_BYTES,
    RecordingNotifier,
    make_settings,
)

# In-memory SQLite shared by every connection (and by TestClient's worker threads)
test_engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db():
    """
    Provide a database session on freshly created tables.

    The pipeline commits, so isolation comes from dropping the tables after
    each test rather than from rolling back a transaction.
    """
    Base.metadata.create_all(bind=test_engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


def override_get_db(db_session):
    """Dependency override for get_db that yields the test session."""
    def _override():
        yield db_session
    return _override


@pytest.fixture(scope="session")
def wwdr_key():
    return generate_key()


@pytest.fixture(scope="session")
def wwdr_certificate(wwdr_key):
    return make_wwdr(wwdr_key)


@pytest.fixture(scope="session")
def pass_key():
    return generate_key()


@pytest.fixture(scope="session")
def pass_certificate(pass_key, wwdr_certificate, wwdr_key):
    return make_pass_certificate(pass_key, wwdr_certificate, wwdr_key)


@pytest.fixture(scope="session")
def signing_files(tmp_path_factory, pass_key, pass_certificate, wwdr_certificate):
    """Valid key, pass certificate and WWDR certificate as PEM files."""
    directory = tmp_path_factory.mktemp("certs")
    return write_signing_files(directory, pass_key, pass_certificate, wwdr_certificate)


@pytest.fixture
def pass_settings(signing_files):
    return make_settings(signing_files)


@pytest.fixture
def trust_store(pass_settings):
    return PassCertificateTrustStore(pass_settings)


@pytest.fixture
def icon_assets():
    # icon@3x.png deliberately absent: it must be skipped, not fail the pass
    return StaticAssetSource({"icon.png": ICON_BYTES, "icon@2x.png": ICON_2X_BYTES})


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def pass_service(pass_settings, trust_store, icon_assets, notifier):
    return PassService(
        pass_settings,
        trust_store=trust_store,
        asset_source=icon_assets,
        notifier=notifier,
    )


@pytest.fixture
def client(db, pass_service):
    """FastAPI TestClient with the test database and pass service injected."""
    from fastapi.testclient import TestClient
    from passkit.db import get_db
    from passkit.dependencies import get_pass_service
    from passkit.main import app

    app.dependency_overrides[get_db] = override_get_db(db)
    app.dependency_overrides[get_pass_service] = lambda: pass_service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
