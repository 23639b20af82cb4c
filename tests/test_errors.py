"""
tests/test_errors.py
"""
from __future__ import annotations

import sqlite3

import pytest

import inkling.blog as blog
from inkling.blog import PersistenceError, app, register_author, transaction


def _schemaless_db():
    db = sqlite3.connect(":memory:")
    db.row_factory = sqlite3.Row
    return db


# ─────────────────────────■  tests  ■────────────────────────────────

def test_404_custom_page(client):
    """
    Any unknown URL yields the themed “Page not found” template.
    """
    resp = client.get("/this/route/does/not/exist")
    assert resp.status_code == 404
    # sanity-check that we really rendered *our* template, not Werkzeug’s
    assert b"Page not found" in resp.data
    assert b"inkling" in resp.data


def test_404_as_json_when_asked(client):
    resp = client.get("/reader/article/999", headers={"Accept": "application/json"})
    assert resp.status_code == 404
    assert resp.get_json() == {"message": "No article with id 999."}


def test_500_handler_renders_friendly_page(client, monkeypatch):
    """
    Temporarily replace ``index`` with a view that crashes, but disable
    exception propagation so the global 500-handler can render the page.
    """
    def _boom():
        raise RuntimeError("kaboom!")

    # ➊ monkey-patch the failing view
    monkeypatch.setitem(app.view_functions, "index", _boom)

    # ➋ turn *off* propagation just for this test
    monkeypatch.setitem(app.config, "PROPAGATE_EXCEPTIONS", False)

    resp = client.get("/")                 # handled by our 500-handler
    assert resp.status_code == 500
    assert b"Internal Server Error" in resp.data


def test_store_failure_is_a_persistence_error():
    with pytest.raises(PersistenceError) as info:
        register_author("Alice", db=_schemaless_db())
    assert isinstance(info.value.__cause__, sqlite3.OperationalError)
    assert info.value.code == 500


def test_store_failure_renders_500_page(client, monkeypatch):
    monkeypatch.setattr(blog, "get_db", _schemaless_db)

    resp = client.get("/reader/homepage")
    assert resp.status_code == 500
    assert b"could not complete the request" in resp.data


def test_store_failure_on_json_endpoint(client, monkeypatch):
    monkeypatch.setattr(blog, "get_db", _schemaless_db)

    resp = client.post("/reader/like/1")
    assert resp.status_code == 500
    assert resp.get_json() == {"message": PersistenceError.description}


def test_transaction_rolls_back_on_error(db):
    with pytest.raises(RuntimeError):
        with transaction(db):
            db.execute("INSERT INTO users (user_name) VALUES ('half-way')")
            raise RuntimeError("stop")

    assert db.execute("SELECT COUNT(*) FROM users").fetchone()[0] == 0


def test_constraint_violation_rolls_back(db):
    with pytest.raises(PersistenceError):
        with transaction(db):
            db.execute("INSERT INTO users (user_name) VALUES ('ok')")
            db.execute(
                "INSERT INTO articles (user_id, article_creation_datetime, "
                "article_modification_datetime) VALUES (999, 'x', 'x')"
            )  # foreign key → users

    assert db.execute("SELECT COUNT(*) FROM users").fetchone()[0] == 0


def test_security_headers(client):
    resp = client.get("/")
    assert resp.headers["X-Frame-Options"] == "DENY"
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
