"""tests/test_smoke.py"""

import pytest


@pytest.mark.parametrize(
    "path",
    [
        "/",                  # landing page
        "/register",          # registration form
        "/reader/homepage",   # published feed
        "/reader/rss",        # RSS
    ],
)
def test_public_routes_ok(client, path):
    """Each public endpoint should return a *successful* HTTP status."""
    rv = client.get(path)
    assert rv.status_code == 200


def test_not_found(client):
    """Completely unknown URL → 404 page."""
    rv = client.get("/does/not/exist")
    assert rv.status_code == 404
    assert b"Page not found" in rv.data


def test_landing_page_links_to_both_sides(client):
    rv = client.get("/")
    assert b'href="/reader/homepage"' in rv.data
    assert b'href="/register"' in rv.data
