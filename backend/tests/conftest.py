import os

import pytest

from tests.fakes import PROXY_URL, STORE_URL

# Settings are read when apiprobe.config is imported, so set these first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["PROXY_URL"] = PROXY_URL
os.environ["STORE_URL"] = STORE_URL
os.environ["LOG_CONFIG_PATH"] = "/tmp/apiprobe-missing-logging.yml"

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from apiprobe.db import Base  # noqa: E402
from apiprobe.models import Environment, EnvironmentVariable  # noqa: E402


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False)
    engine.dispose()


@pytest.fixture
def add_environment(session_factory):
    """Insert an environment; variables are (key, value, enabled) tuples in stored order."""

    def _add(name, variables=(), user_id="user-1"):
        db = session_factory()
        try:
            env = Environment(name=name, user_id=user_id)
            env.variables = [
                EnvironmentVariable(key=k, value=v, enabled=enabled) for k, v, enabled in variables
            ]
            db.add(env)
            db.commit()
            return env.id
        finally:
            db.close()

    return _add
