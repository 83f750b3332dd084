from collections.abc import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from user_api.core.config import Settings
from user_api.main import create_app
from tests.utils.datastore import FakeDatastore


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        PORT=8080,
        MYSQL_USER="app",
        MYSQL_PASSWORD="secret",
        MYSQL_HOST="localhost",
        MYSQL_DATABASE="app",
        SHUTDOWN_DRAIN_TIMEOUT=0.5,
    )


@pytest.fixture
def datastore() -> FakeDatastore:
    return FakeDatastore()


@pytest.fixture
def app(settings: Settings, datastore: FakeDatastore) -> FastAPI:
    return create_app(settings, datastore)  # type: ignore[arg-type]


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c
