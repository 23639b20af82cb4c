"""
tests/conftest.py
"""
from __future__ import annotations

import datetime as _dt
import itertools
from pathlib import Path
from typing import Generator

import pytest
from flask.testing import FlaskClient
from pytest import MonkeyPatch

# The single-file app lives here:
from inkling.blog import app, get_db, init_db


@pytest.fixture(scope="session")
def _tmp_db_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """One temp file for the whole test session (faster than per-test)."""
    db_file = tmp_path_factory.mktemp("data") / "test.sqlite3"
    return db_file


@pytest.fixture(scope="session", autouse=True)
def _configure_app(_tmp_db_path: Path) -> None:
    """
    Configure the Flask app *once* before the first test is collected.
    """
    app.config.update(
        TESTING=True,
        DATABASE=str(_tmp_db_path),
        SESSION_COOKIE_SECURE=False,  # the test client talks plain http
        TIMEZONE="UTC",
    )
    with app.app_context():
        init_db()


@pytest.fixture(autouse=True)
def _clean_tables(_configure_app) -> None:
    """Every test starts with empty tables and ids counting from 1."""
    with app.app_context():
        db = get_db()
        db.execute("DELETE FROM articles_comments")
        db.execute("DELETE FROM articles")
        db.execute("DELETE FROM users")
        db.execute("DELETE FROM sqlite_sequence")
        db.commit()


@pytest.fixture
def client() -> Generator[FlaskClient, None, None]:
    """
    Gives each test an isolated application context *and* test client.

    Yields:
        `flask.testing.FlaskClient`
    """
    with app.test_client() as client:
        with app.app_context():
            yield client


@pytest.fixture
def db(client):
    """The connection the app itself uses during this test."""
    return get_db()


@pytest.fixture(autouse=True, scope="session")
def _ticking_clock():
    """
    Patch inkling.blog.utc_now for the whole test session so every call
    returns an ever-increasing timestamp.  No need for time.sleep().
    """
    from inkling import blog  # import here to avoid early import

    counter = itertools.count()         # 0, 1, 2, …

    base = _dt.datetime(2099, 1, 1, tzinfo=_dt.timezone.utc)
    def _fake_now():
        return base + _dt.timedelta(seconds=next(counter))

    mp = MonkeyPatch()
    mp.setattr(blog, "utc_now", _fake_now)

    yield                               # tests run here

    mp.undo()                           # clean up at session end
