#!/usr/bin/env python3
"""
A single-file blog for several authors.

Authors draft, edit, publish and delete articles; readers browse the
published feed, like articles and leave comments.
"""

import os
import secrets
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import lru_cache, wraps
from html import escape
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from zoneinfo import ZoneInfo, available_timezones

import click
import markdown
from flask import (
    Flask,
    flash,
    g,
    redirect,
    render_template_string,
    request,
    session,
    url_for,
)
from markupsafe import Markup
from werkzeug.exceptions import (
    BadRequest,
    Forbidden,
    HTTPException,
    InternalServerError,
    NotFound,
)
from werkzeug.middleware.proxy_fix import ProxyFix
from werkzeug.routing import IntegerConverter

################################################################################
# Imports & constants
################################################################################

ROOT = Path(__file__).parent
DB_FILE = Path(os.environ.get("BLOG_DATABASE", str(ROOT / "blog.sqlite3")))

SECRET_FILE = ROOT / ".secret_key"
SECRET_KEY = os.environ.get("BLOG_SECRET_KEY") or (
    SECRET_FILE.read_text().strip() if SECRET_FILE.exists() else ""
)
if not SECRET_KEY:
    SECRET_KEY = secrets.token_hex(32)
    SECRET_FILE.write_text(SECRET_KEY)

SITE_NAME = "inkling"
TZ_DFLT = "UTC"
DISPLAY_FMT = "%Y-%m-%d %H:%M:%S"
RFC2822_FMT = "%a, %d %b %Y %H:%M:%S %z"
RSS_LIMIT = 50
MAX_ID = 2**63 - 1  # largest SQLite INTEGER

DRAFT = "Draft"
PUBLISHED = "Published"
ARTICLE_STATUSES = (DRAFT, PUBLISHED)

ACTION_SAVE_DRAFT = "Save Draft"
ACTION_POST = "Post"
ACTION_SEND = "Send"
EDIT_ACTIONS = {ACTION_SAVE_DRAFT: DRAFT, ACTION_POST: PUBLISHED}

AUTHOR_REFERRER = "author"
NEW_ARTICLE_TITLE = "New Article"

# endpoints answering with JSON instead of an HTML page
JSON_ENDPOINTS = {"author_delete", "reader_like"}

IMPORT_TABLES = ("users", "articles", "articles_comments")  # FK parents first

MD_EXTENSIONS = [
    "pymdownx.extra",
    "pymdownx.magiclink",
    "pymdownx.tilde",
    "pymdownx.mark",
    "pymdownx.betterem",
    "pymdownx.saneheaders",
]

try:
    __version__ = version("inkling")
except PackageNotFoundError:
    __version__ = "0.1.0-dev"


################################################################################
# App + template filters
################################################################################
class RowIdConverter(IntegerConverter):
    """`<id:…>` – a positive integer that fits a SQLite rowid."""

    def __init__(self, map, *args, **kwargs):
        super().__init__(map, min=1, max=MAX_ID)


app = Flask(__name__)
app.url_map.converters["id"] = RowIdConverter
app.url_map.strict_slashes = False
app.config.update(SECRET_KEY=SECRET_KEY, DATABASE=str(DB_FILE))
app.config.update(
    SESSION_COOKIE_SAMESITE="Lax",
    SESSION_COOKIE_HTTPONLY=True,
    SESSION_COOKIE_SECURE=os.environ.get("SESSION_COOKIE_SECURE", "0") == "1",
    DATABASE_TIMEOUT=float(os.environ.get("DATABASE_TIMEOUT", "5")),
    TIMEZONE=os.environ.get("BLOG_TIMEZONE", TZ_DFLT),
)
app.logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)


def render_markdown_html(text: str | None) -> str:
    """Markdown → HTML. Raw HTML from the rich-text editor passes through."""
    if not text:
        return ""
    return markdown.markdown(text, extensions=MD_EXTENSIONS)


@app.template_filter("md")
def md_filter(text: str | None) -> Markup:
    return Markup(render_markdown_html(text))


@app.template_filter("ts")
def ts_filter(iso: str | None) -> str:
    return format_timestamp(iso) or ""


###############################################################################
# Database helpers
###############################################################################
class PersistenceError(InternalServerError):
    """The database refused or failed a statement."""

    description = "The blog database could not complete the request."


SCHEMA = """
    ------------------------------------------------------------
    -- 1.  Authors
    ------------------------------------------------------------
    CREATE TABLE IF NOT EXISTS users (
        user_id        INTEGER PRIMARY KEY AUTOINCREMENT,
        user_name      TEXT NOT NULL,
        blog_title     TEXT NOT NULL DEFAULT '',
        blog_subtitle  TEXT NOT NULL DEFAULT ''
    );

    ------------------------------------------------------------
    -- 2.  Articles
    ------------------------------------------------------------
    CREATE TABLE IF NOT EXISTS articles (
        article_id                     INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id                        INTEGER NOT NULL,
        article_title                  TEXT NOT NULL DEFAULT '',
        article_content                TEXT NOT NULL DEFAULT '',
        article_status                 TEXT NOT NULL DEFAULT 'Draft'
                                       CHECK (article_status IN ('Draft','Published')),
        article_creation_datetime      TEXT NOT NULL,
        article_modification_datetime  TEXT NOT NULL,
        article_publication_datetime   TEXT,            -- NULL until first publish
        article_view                   INTEGER NOT NULL DEFAULT 0
                                       CHECK (article_view >= 0),
        article_likes                  INTEGER NOT NULL DEFAULT 0
                                       CHECK (article_likes >= 0),
        FOREIGN KEY (user_id) REFERENCES users(user_id) ON DELETE CASCADE
    );

    CREATE INDEX IF NOT EXISTS idx_articles_user_status
        ON articles(user_id, article_status);
    CREATE INDEX IF NOT EXISTS idx_articles_status_pub
        ON articles(article_status, article_publication_datetime);

    ------------------------------------------------------------
    -- 3.  Comments
    ------------------------------------------------------------
    CREATE TABLE IF NOT EXISTS articles_comments (
        comment_id        INTEGER PRIMARY KEY AUTOINCREMENT,
        article_id        INTEGER NOT NULL,
        comment_name      TEXT NOT NULL DEFAULT '',
        comment_content   TEXT NOT NULL DEFAULT '',
        comment_datetime  TEXT,
        FOREIGN KEY (article_id) REFERENCES articles(article_id) ON DELETE CASCADE
    );

    CREATE INDEX IF NOT EXISTS idx_comments_article
        ON articles_comments(article_id);
"""


def get_db():
    if "db" not in g:
        try:
            g.db = sqlite3.connect(
                app.config["DATABASE"], timeout=app.config["DATABASE_TIMEOUT"]
            )
        except sqlite3.Error as exc:
            app.logger.exception("Could not open %s", app.config["DATABASE"])
            raise PersistenceError() from exc
        g.db.execute("PRAGMA foreign_keys = ON;")
        g.db.row_factory = sqlite3.Row
    return g.db


@app.teardown_appcontext
def close_db(error=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()


def init_db():
    db = get_db()
    db.executescript(SCHEMA)
    db.commit()


@contextmanager
def transaction(db):
    """
    Commit when the block finishes, roll back when it raises.

    Driver errors come out as `PersistenceError`; HTTP errors raised
    inside the block (NotFound, Forbidden, …) pass through untouched.
    """
    try:
        yield db
    except sqlite3.Error as exc:
        db.rollback()
        app.logger.exception("Database statement failed")
        raise PersistenceError() from exc
    except Exception:
        db.rollback()
        raise
    else:
        db.commit()


def import_database(source: Path, *, db) -> dict[str, int]:
    """
    Copy authors, articles and comments from another database file.

    Only columns present in both schemas are copied, so a legacy file
    without e.g. `comment_datetime` still imports. NULLs landing in a
    NOT NULL column fall back to that column's default. Meant for a fresh
    target: clashing ids abort the whole import.
    """
    src = sqlite3.connect(f"file:{source}?mode=ro", uri=True)
    src.row_factory = sqlite3.Row
    counts: dict[str, int] = {}
    try:
        with transaction(db):
            for table in IMPORT_TABLES:
                dst_cols = list(db.execute(f"PRAGMA table_info({table})"))
                src_cols = {c["name"] for c in src.execute(f"PRAGMA table_info({table})")}
                shared = [c for c in dst_cols if c["name"] in src_cols]
                if not shared:
                    counts[table] = 0
                    continue

                common = [c["name"] for c in shared]
                col_list = ", ".join(common)
                qms = ", ".join(
                    f"COALESCE(?, {c['dflt_value']})"
                    if c["notnull"] and c["dflt_value"] is not None
                    else "?"
                    for c in shared
                )
                rows = src.execute(f"SELECT {col_list} FROM {table}").fetchall()
                db.executemany(
                    f"INSERT INTO {table} ({col_list}) VALUES ({qms})",
                    [tuple(r[c] for c in common) for r in rows],
                )
                counts[table] = len(rows)
    finally:
        src.close()

    app.logger.info("Imported %s from %s", counts, source)
    return counts


# -------------------------------------------------------------------------
# Time helpers
# -------------------------------------------------------------------------
def utc_now() -> datetime:
    """Return an *aware* datetime in UTC."""
    return datetime.now(timezone.utc)


def _stamp() -> str:
    return utc_now().isoformat(timespec="seconds")


@lru_cache(maxsize=1)
def _known_timezones() -> frozenset[str]:
    return frozenset(available_timezones())


def tz_name() -> str:
    tz = app.config.get("TIMEZONE") or TZ_DFLT
    return tz if tz in _known_timezones() else TZ_DFLT


###############################################################################
# Formatting
###############################################################################
def format_timestamp(iso: str | None) -> str | None:
    """
    Stored ISO-8601 timestamp → ``YYYY-MM-DD HH:MM:SS`` in the blog's
    timezone. Naive values are taken as UTC; unparsable ones come back
    unchanged.
    """
    if not iso:
        return None
    try:
        dt = datetime.fromisoformat(iso)
    except (TypeError, ValueError):
        return iso
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    tz = tz_name()
    zone = timezone.utc if tz == TZ_DFLT else ZoneInfo(tz)
    return dt.astimezone(zone).strftime(DISPLAY_FMT)


def format_article_dates(row) -> dict:
    """
    Copy an article row into a dict with its three timestamps formatted.
    The publication time is only kept for published articles.
    """
    article = dict(row)
    article["article_creation_datetime"] = format_timestamp(
        article.get("article_creation_datetime")
    )
    article["article_modification_datetime"] = format_timestamp(
        article.get("article_modification_datetime")
    )
    article["article_publication_datetime"] = (
        format_timestamp(article.get("article_publication_datetime"))
        if article.get("article_status") == PUBLISHED
        else None
    )
    return article


def _rfc2822(dt_str: str | None) -> str:
    """ISO-8601 → RFC 2822 (Tue, 24 Jun 2025 09:22:20 +0000)."""
    if not dt_str:
        return ""
    try:
        dt = datetime.fromisoformat(dt_str)
    except ValueError:
        return dt_str
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.strftime(RFC2822_FMT)


###############################################################################
# Request helpers
###############################################################################
def current_author_id() -> int | None:
    return session.get("author_id")


def author_required(view):
    """
    Hand the session's author id to *view* as its first argument.

    Without one, HTML pages send the visitor to the registration form
    and JSON endpoints answer 403.
    """

    @wraps(view)
    def wrapped(*args, **kwargs):
        author_id = current_author_id()
        if author_id is None:
            if request.endpoint in JSON_ENDPOINTS:
                raise Forbidden("Register as an author first.")
            return redirect(url_for("register"))
        return view(author_id, *args, **kwargs)

    return wrapped


def optional_id(value) -> int | None:
    """Form value → article id; blank means absent."""
    if value is None or not str(value).strip():
        return None
    try:
        article_id = int(value)
    except ValueError:
        raise BadRequest(f"Invalid article id {value!r}.") from None
    if not 1 <= article_id <= MAX_ID:
        raise BadRequest(f"Invalid article id {value!r}.")
    return article_id


###############################################################################
# Author service
###############################################################################
def _profile(row) -> dict:
    return {
        "user_id": row["user_id"],
        "user_name": row["user_name"],
        "blog_title": row["blog_title"],
        "blog_subtitle": row["blog_subtitle"],
    }


def _user_row(author_id: int, *, db):
    row = db.execute("SELECT * FROM users WHERE user_id=?", (author_id,)).fetchone()
    if row is None:
        raise NotFound(f"No author with id {author_id}.")
    return row


def owned_article(author_id: int, article_id: int, *, db):
    """Fetch an article the author may edit (404 if absent, 403 if not theirs)."""
    row = db.execute(
        "SELECT * FROM articles WHERE article_id=?", (article_id,)
    ).fetchone()
    if row is None:
        raise NotFound(f"No article with id {article_id}.")
    if row["user_id"] != author_id:
        raise Forbidden("This article belongs to another author.")
    return row


def register_author(name: str, *, db) -> int:
    name = (name or "").strip()
    if not name:
        raise BadRequest("A display name is required.")
    with transaction(db):
        cur = db.execute("INSERT INTO users (user_name) VALUES (?)", (name,))
    app.logger.info("Registered author %s (%s)", cur.lastrowid, name)
    return cur.lastrowid


def author_homepage(author_id: int, *, db) -> dict:
    with transaction(db):
        user = _user_row(author_id, db=db)
        drafts = db.execute(
            """
            SELECT * FROM articles
             WHERE article_status=? AND user_id=?
          ORDER BY article_modification_datetime DESC, article_id DESC
            """,
            (DRAFT, author_id),
        ).fetchall()
        published = db.execute(
            """
            SELECT * FROM articles
             WHERE article_status=? AND user_id=?
          ORDER BY article_publication_datetime DESC, article_id DESC
            """,
            (PUBLISHED, author_id),
        ).fetchall()
    return {
        "profile": _profile(user),
        "drafts": [format_article_dates(r) for r in drafts],
        "published": [format_article_dates(r) for r in published],
    }


def author_settings(author_id: int, *, db) -> dict:
    with transaction(db):
        user = _user_row(author_id, db=db)
    profile = _profile(user)
    del profile["user_id"]
    return profile


def update_author_settings(
    author_id: int, name: str, blog_title: str, blog_subtitle: str, *, db
) -> bool:
    """
    Replace the author's display fields. An unknown author is not an
    error: nothing changes and False comes back.
    """
    name = (name or "").strip()
    if not name:
        raise BadRequest("A display name is required.")
    with transaction(db):
        cur = db.execute(
            """
            UPDATE users SET user_name=?, blog_title=?, blog_subtitle=?
             WHERE user_id=?
            """,
            (name, blog_title or "", blog_subtitle or "", author_id),
        )
    if cur.rowcount == 0:
        app.logger.warning("Settings update for unknown author %s ignored", author_id)
        return False
    app.logger.info("Updated settings of author %s", author_id)
    return True


def edit_view(author_id: int, article_id: int | None = None, *, db) -> dict:
    """Form values for the editor: an existing article or a blank new one."""
    if article_id is None:
        now = format_timestamp(_stamp())
        return {
            "article_id": None,
            "article_title": NEW_ARTICLE_TITLE,
            "article_content": "",
            "article_status": DRAFT,
            "article_creation_datetime": now,
            "article_modification_datetime": now,
            "article_publication_datetime": None,
        }
    with transaction(db):
        row = owned_article(author_id, article_id, db=db)
    return format_article_dates(row)


def submit_edit(
    author_id: int,
    article_id: int | None,
    action: str,
    title: str,
    content: str,
    *,
    db,
) -> int:
    """
    Create, save or publish an article; returns its id.

    Status only ever moves Draft → Published. Publishing again keeps
    the first publication time.
    """
    status = EDIT_ACTIONS.get(action)
    if status is None:
        raise BadRequest("Unknown action")
    title = title or ""
    content = content or ""
    now = _stamp()

    with transaction(db):
        if article_id is None:
            _user_row(author_id, db=db)
            cur = db.execute(
                """
                INSERT INTO articles (
                    user_id, article_title, article_content, article_status,
                    article_creation_datetime, article_modification_datetime,
                    article_publication_datetime
                ) VALUES (?,?,?,?,?,?,?)
                """,
                (
                    author_id,
                    title,
                    content,
                    status,
                    now,
                    now,
                    now if status == PUBLISHED else None,
                ),
            )
            article_id = cur.lastrowid
            app.logger.info("Author %s created %s article %s", author_id, status, article_id)
            return article_id

        owned_article(author_id, article_id, db=db)
        if status == DRAFT:
            db.execute(
                """
                UPDATE articles
                   SET article_title=?, article_content=?,
                       article_modification_datetime=?
                 WHERE article_id=? AND user_id=?
                """,
                (title, content, now, article_id, author_id),
            )
            app.logger.info("Author %s saved article %s", author_id, article_id)
        else:
            db.execute(
                """
                UPDATE articles
                   SET article_title=?, article_content=?,
                       article_modification_datetime=?, article_status=?,
                       article_publication_datetime =
                           COALESCE(article_publication_datetime, ?)
                 WHERE article_id=? AND user_id=?
                """,
                (title, content, now, PUBLISHED, now, article_id, author_id),
            )
            app.logger.info("Author %s published article %s", author_id, article_id)
    return article_id


def delete_article(author_id: int, article_id: int, *, db) -> None:
    """Delete an owned article; its comments go with it."""
    with transaction(db):
        owned_article(author_id, article_id, db=db)
        db.execute(
            "DELETE FROM articles WHERE article_id=? AND user_id=?",
            (article_id, author_id),
        )
    app.logger.info("Author %s deleted article %s", author_id, article_id)


###############################################################################
# Reader service
###############################################################################
ARTICLE_WITH_AUTHOR_SQL = """
    SELECT articles.*, users.user_name
      FROM articles
      JOIN users ON users.user_id = articles.user_id
"""


def published_rows(*, db, limit: int | None = None) -> list:
    """Published articles, newest publication first (NULLs last, ties by id)."""
    sql = (
        ARTICLE_WITH_AUTHOR_SQL
        + """
     WHERE articles.article_status=?
  ORDER BY articles.article_publication_datetime IS NULL,
           articles.article_publication_datetime DESC,
           articles.article_id DESC
        """
    )
    params: tuple = (PUBLISHED,)
    if limit is not None:
        sql += " LIMIT ?"
        params += (limit,)
    with transaction(db):
        return db.execute(sql, params).fetchall()


def published_feed(*, db) -> list[dict]:
    return [format_article_dates(r) for r in published_rows(db=db)]


def read_article(
    article_id: int, *, referrer: str | None = None, viewer_id: int | None = None, db
) -> dict:
    """
    Article + comments for the reading view.

    Unless the author is previewing (``referrer == "author"``) a view is
    counted; increment and reload share one transaction so the returned
    count includes it. Drafts are only visible to their owner.
    """
    query = ARTICLE_WITH_AUTHOR_SQL + " WHERE articles.article_id=?"
    with transaction(db):
        article = db.execute(query, (article_id,)).fetchone()
        if article is None or (
            article["article_status"] != PUBLISHED and article["user_id"] != viewer_id
        ):
            raise NotFound(f"No article with id {article_id}.")

        if referrer != AUTHOR_REFERRER and article["article_status"] == PUBLISHED:
            cur = db.execute(
                "UPDATE articles SET article_view = article_view + 1 WHERE article_id=?",
                (article_id,),
            )
            if cur.rowcount == 0:
                raise NotFound(f"No article with id {article_id}.")
            article = db.execute(query, (article_id,)).fetchone()
            app.logger.info(
                "Counted a view of article %s (%s total)",
                article_id,
                article["article_view"],
            )

        comments = db.execute(
            "SELECT * FROM articles_comments WHERE article_id=? ORDER BY comment_id",
            (article_id,),
        ).fetchall()

    return {
        "article": format_article_dates(article),
        "comments": [
            {**dict(c), "comment_datetime": format_timestamp(c["comment_datetime"])}
            for c in comments
        ],
    }


def like_article(article_id: int, *, db) -> int:
    """One more like, no questions asked. Returns the new total."""
    with transaction(db):
        cur = db.execute(
            """
            UPDATE articles SET article_likes = article_likes + 1
             WHERE article_id=? AND article_status=?
            """,
            (article_id, PUBLISHED),
        )
        if cur.rowcount == 0:
            raise NotFound(f"No published article with id {article_id}.")
        likes = db.execute(
            "SELECT article_likes FROM articles WHERE article_id=?", (article_id,)
        ).fetchone()["article_likes"]
    app.logger.info("Article %s liked (%s total)", article_id, likes)
    return likes


def post_comment(
    article_id: int | None,
    commenter_name: str,
    content: str,
    action: str,
    *,
    viewer_id: int | None = None,
    db,
) -> int:
    """Comment on an article the commenter can read (drafts: owner only)."""
    if action != ACTION_SEND or article_id is None:
        raise BadRequest("Missing article ID or incorrect action.")
    with transaction(db):
        row = db.execute(
            "SELECT article_status, user_id FROM articles WHERE article_id=?",
            (article_id,),
        ).fetchone()
        if row is None or (
            row["article_status"] != PUBLISHED and row["user_id"] != viewer_id
        ):
            raise NotFound(f"No article with id {article_id}.")
        cur = db.execute(
            """
            INSERT INTO articles_comments
                   (article_id, comment_name, comment_content, comment_datetime)
            VALUES (?,?,?,?)
            """,
            (article_id, (commenter_name or "").strip(), content or "", _stamp()),
        )
    app.logger.info("New comment %s on article %s", cur.lastrowid, article_id)
    return cur.lastrowid


###############################################################################
# CLI – database setup
###############################################################################
@app.cli.command("init")
def cli_init():
    """Create the database schema (no-op if it already exists)."""
    init_db()
    click.secho(f"\n✅  Database ready at {app.config['DATABASE']}", fg="green")


@app.cli.command("import-db")
@click.argument(
    "source", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
def cli_import_db(source: Path):
    """Copy authors, articles and comments from an older database file."""
    init_db()
    db = get_db()
    if db.execute("SELECT 1 FROM users LIMIT 1").fetchone():
        raise click.ClickException(
            "The target database already has authors – import into a fresh file."
        )

    counts = import_database(source, db=db)
    for table, n in counts.items():
        click.echo(f"  • {table:18} {n:>6} rows")
    click.secho("\n✅  Import finished.", fg="green")


###############################################################################
# Templates + Views
###############################################################################
app.jinja_env.globals.update(
    version=__version__,
    site_name=SITE_NAME,
    current_author_id=current_author_id,
    AUTHOR_REFERRER=AUTHOR_REFERRER,
)


def wrap(body: str) -> str:
    """Glue prolog + page-specific body + epilog."""
    return TEMPL_PROLOG + body + TEMPL_EPILOG


TEMPL_PROLOG = """
<!doctype html>
<html lang="en">
<title>{{ title or site_name }}</title>
<meta name="viewport" content="width=device-width, initial-scale=1">
<meta charset="utf-8">
<link rel="alternate" type="application/rss+xml"
      href="{{ url_for('reader_rss') }}" title="{{ site_name }} – RSS">
<style>
html{font-size:62.5%;font-family:-apple-system,BlinkMacSystemFont,"Segoe UI",Roboto,"Helvetica Neue",Arial,sans-serif}
body{font-size:1.8rem;line-height:1.618;max-width:42em;margin:auto;color:#c9c9c9;background:#222;padding:13px}
h1,h2,h3{line-height:1.1;font-weight:700;margin-top:3rem;margin-bottom:1.5rem;overflow-wrap:break-word}
a{color:#fff;text-decoration:underline;text-decoration-color:transparent;text-underline-offset:.18em}
a:hover{color:#c9c9c9;text-decoration-color:#c9c9c9}
table{width:100%;border-collapse:collapse;margin-bottom:2rem}
td,th{padding:.5em;border-bottom:1px solid #4a4a4a;text-align:left}
textarea,input{color:#c9c9c9;padding:6px 10px;margin-bottom:10px;background:#2b2b2b;border:1px solid #555;border-radius:6px;box-sizing:border-box;width:100%}
button,input[type=submit]{display:inline-block;width:auto;padding:5px 10px;background:#fff;color:#222;border:1px solid #fff;border-radius:1px;cursor:pointer}
button[disabled]{cursor:default;opacity:.5}
label{display:block;margin-bottom:.5rem;font-weight:600}
.meta{color:#888;font-size:.8em}
.danger{background:#c00;color:#fff;border-color:#c00}
nav a{margin-right:1.25rem}
</style>
<body>
<div style="max-width:60rem;margin:3rem auto;">
    <h1 style="margin:0 0 1rem;">
        <a href="{{ url_for('index') }}" style="text-decoration:none;">{{ title or site_name }}</a>
    </h1>
    {% if subtitle %}<p style="color:#bcbcbc;margin-top:-.5rem;">{{ subtitle }}</p>{% endif %}
    <nav aria-label="Primary" style="margin-bottom:1rem;font-size:.9em;">
        <a href="{{ url_for('reader_homepage') }}">Read</a>
        {% if current_author_id() %}
            <a href="{{ url_for('author_dashboard') }}">Dashboard</a>
            <a href="{{ url_for('author_settings_view') }}">Settings</a>
        {% else %}
            <a href="{{ url_for('register') }}">Become an author</a>
        {% endif %}
    </nav>
    {% with msgs = get_flashed_messages() %}
    {% if msgs %}
        <div role="status" aria-live="polite" style="background:#323232;color:#fff;padding:.75rem 1rem;border-radius:.4rem;font-size:.9em;">
        {{ msgs|join('<br>'|safe) }}
        </div>
    {% endif %}
    {% endwith %}
    <main id="main-content">
"""

TEMPL_EPILOG = """
    </main>
    <footer style="margin-top:1.875em;padding-top:1.5em;font-size:.8em;color:#888;border-top:1px solid #444;">
        {{ site_name }} <span style="color:#aaa">v{{ version }}</span>
        · <a href="{{ url_for('reader_rss') }}">RSS</a>
    </footer>
</div>
<script>
document.addEventListener("click", function (ev) {
    var del = ev.target.closest("[data-delete-url]");
    if (del) {
        ev.preventDefault();
        fetch(del.dataset.deleteUrl, {method: "DELETE"})
            .then(function (r) { if (!r.ok) throw new Error("Request failed."); return r.json(); })
            .then(function () { window.location.reload(); })
            .catch(function (err) { console.error(err); });
        return;
    }
    var like = ev.target.closest("[data-like-url]");
    if (like) {
        ev.preventDefault();
        like.disabled = true;
        fetch(like.dataset.likeUrl, {method: "POST"})
            .then(function (r) { if (!r.ok) throw new Error("Request failed."); return r.json(); })
            .then(function (data) { document.getElementById("like-count").textContent = data.likes; })
            .catch(function (err) { console.error(err); like.disabled = false; });
    }
});
</script>
</body>
</html>
"""


@app.route("/")
def index():
    return render_template_string(TEMPL_INDEX, title=SITE_NAME)


TEMPL_INDEX = wrap("""
    <p>A small place to write and to read.</p>
    <ul>
        <li><a href="{{ url_for('reader_homepage') }}">Browse published articles</a></li>
        {% if current_author_id() %}
        <li><a href="{{ url_for('author_dashboard') }}">Go to your dashboard</a></li>
        {% else %}
        <li><a href="{{ url_for('register') }}">Start writing</a></li>
        {% endif %}
    </ul>
""")


@app.route("/register")
def register():
    return render_template_string(TEMPL_REGISTER, title=SITE_NAME)


@app.route("/add-user", methods=["POST"])
def add_user():
    author_id = register_author(request.form.get("user_name", ""), db=get_db())
    session.permanent = True
    session["author_id"] = author_id
    return redirect(url_for("author_dashboard"))


TEMPL_REGISTER = wrap("""
    <h2>Become an author</h2>
    <form method="post" action="{{ url_for('add_user') }}">
        <label for="user_name">Your name</label>
        <input id="user_name" name="user_name" required autofocus>
        <button type="submit">Register</button>
    </form>
""")


# ---------------------------------------------------------------------------
# Author pages
# ---------------------------------------------------------------------------
@app.route("/author/homepage")
@author_required
def author_dashboard(author_id):
    ctx = author_homepage(author_id, db=get_db())
    profile = ctx["profile"]
    return render_template_string(
        TEMPL_AUTHOR_HOME,
        title=profile["blog_title"] or SITE_NAME,
        subtitle=profile["blog_subtitle"],
        **ctx,
    )


TEMPL_AUTHOR_HOME = wrap("""
    <p class="meta">Writing as <strong>{{ profile.user_name }}</strong></p>
    <p><a href="{{ url_for('author_edit') }}">✎ Create new draft</a></p>

    <h2>Drafts</h2>
    {% if drafts %}
    <table>
        <tr><th>Title</th><th>Created</th><th>Modified</th><th></th></tr>
        {% for a in drafts %}
        <tr>
            <td>{{ a.article_title }}</td>
            <td class="meta">{{ a.article_creation_datetime }}</td>
            <td class="meta">{{ a.article_modification_datetime }}</td>
            <td>
                <a href="{{ url_for('author_edit', article_id=a.article_id) }}">Edit</a>
                <button type="button" class="danger"
                        data-delete-url="{{ url_for('author_delete', article_id=a.article_id) }}">Delete</button>
            </td>
        </tr>
        {% endfor %}
    </table>
    {% else %}
    <p class="meta">No drafts.</p>
    {% endif %}

    <h2>Published</h2>
    {% if published %}
    <table>
        <tr><th>Title</th><th>Published</th><th>Views</th><th>Likes</th><th></th></tr>
        {% for a in published %}
        <tr>
            <td><a href="{{ url_for('reader_article', article_id=a.article_id, referrer=AUTHOR_REFERRER) }}">{{ a.article_title }}</a></td>
            <td class="meta">{{ a.article_publication_datetime }}</td>
            <td>{{ a.article_view }}</td>
            <td>{{ a.article_likes }}</td>
            <td>
                <a href="{{ url_for('author_edit', article_id=a.article_id) }}">Edit</a>
                <button type="button" class="danger"
                        data-delete-url="{{ url_for('author_delete', article_id=a.article_id) }}">Delete</button>
            </td>
        </tr>
        {% endfor %}
    </table>
    {% else %}
    <p class="meta">Nothing published yet.</p>
    {% endif %}
""")


@app.route("/author/settings")
@author_required
def author_settings_view(author_id):
    settings = author_settings(author_id, db=get_db())
    return render_template_string(TEMPL_SETTINGS, title=SITE_NAME, settings=settings)


@app.route("/author/update-settings", methods=["POST"])
@author_required
def author_update_settings(author_id):
    settings = {
        k: request.form.get(k, "") for k in ("user_name", "blog_title", "blog_subtitle")
    }
    saved = update_author_settings(
        author_id,
        settings["user_name"],
        settings["blog_title"],
        settings["blog_subtitle"],
        db=get_db(),
    )
    flash("Settings saved." if saved else "No author profile found – nothing was saved.")
    return render_template_string(TEMPL_SETTINGS, title=SITE_NAME, settings=settings)


TEMPL_SETTINGS = wrap("""
    <h2>Settings</h2>
    <form method="post" action="{{ url_for('author_update_settings') }}">
        <label for="user_name">Author name</label>
        <input id="user_name" name="user_name" value="{{ settings.user_name }}" required>
        <label for="blog_title">Blog title</label>
        <input id="blog_title" name="blog_title" value="{{ settings.blog_title }}">
        <label for="blog_subtitle">Blog subtitle</label>
        <input id="blog_subtitle" name="blog_subtitle" value="{{ settings.blog_subtitle }}">
        <button type="submit">Save</button>
        <a href="{{ url_for('author_dashboard') }}" style="margin-left:1rem;">Back</a>
    </form>
""")


@app.route("/author/edit", methods=["GET", "POST"])
@app.route("/author/edit/<id:article_id>", methods=["GET", "POST"])
@author_required
def author_edit(author_id, article_id=None):
    db = get_db()
    if request.method == "POST":
        form_id = optional_id(request.form.get("article_id"))
        submit_edit(
            author_id,
            form_id if form_id is not None else article_id,
            request.form.get("action", ""),
            request.form.get("article_title", ""),
            request.form.get("article_content", ""),
            db=db,
        )
        return redirect(url_for("author_dashboard"))

    article = edit_view(author_id, article_id, db=db)
    return render_template_string(TEMPL_EDIT, title=SITE_NAME, article=article)


TEMPL_EDIT = wrap("""
    <h2>{{ 'Edit article' if article.article_id else 'New article' }}</h2>
    <p class="meta">
        Created {{ article.article_creation_datetime }} ·
        Last modified {{ article.article_modification_datetime }}
        {% if article.article_publication_datetime %}
        · Published {{ article.article_publication_datetime }}
        {% endif %}
    </p>
    <form method="post"
          action="{{ url_for('author_edit', article_id=article.article_id) if article.article_id else url_for('author_edit') }}">
        <input type="hidden" name="article_id" value="{{ article.article_id or '' }}">
        <label for="article_title">Title</label>
        <input id="article_title" name="article_title" value="{{ article.article_title }}">
        <label for="article_content">Content</label>
        <textarea id="article_content" name="article_content" rows="16">{{ article.article_content }}</textarea>
        <button type="submit" name="action" value="Save Draft">Save Draft</button>
        <button type="submit" name="action" value="Post">Post</button>
        <a href="{{ url_for('author_dashboard') }}" style="margin-left:1rem;">Cancel</a>
    </form>
""")


@app.route("/author/delete/<id:article_id>", methods=["DELETE"])
@author_required
def author_delete(author_id, article_id):
    delete_article(author_id, article_id, db=get_db())
    return {"message": "Article Deleted Successfully."}


# ---------------------------------------------------------------------------
# Reader pages
# ---------------------------------------------------------------------------
@app.route("/reader/homepage")
def reader_homepage():
    articles = published_feed(db=get_db())
    return render_template_string(TEMPL_READER_HOME, title=SITE_NAME, articles=articles)


TEMPL_READER_HOME = wrap("""
    <h2>Latest articles</h2>
    {% for a in articles %}
    <article style="padding-bottom:1.5rem;border-bottom:1px solid #444;margin-bottom:1.5rem;">
        <h3 style="margin-bottom:.5rem;">
            <a href="{{ url_for('reader_article', article_id=a.article_id) }}">{{ a.article_title }}</a>
        </h3>
        <span class="meta">
            by {{ a.user_name }} · {{ a.article_publication_datetime }}
            · {{ a.article_view }} views · {{ a.article_likes }} likes
        </span>
    </article>
    {% else %}
    <p class="meta">Nothing has been published yet.</p>
    {% endfor %}
""")


@app.route("/reader/article/<id:article_id>")
def reader_article(article_id):
    referrer = request.args.get("referrer")
    ctx = read_article(
        article_id, referrer=referrer, viewer_id=current_author_id(), db=get_db()
    )
    return render_template_string(
        TEMPL_ARTICLE,
        title=ctx["article"]["article_title"] or SITE_NAME,
        referrer=referrer,
        **ctx,
    )


TEMPL_ARTICLE = wrap("""
    <article>
        <p class="meta">
            by {{ article.user_name }}
            {% if article.article_publication_datetime %}· {{ article.article_publication_datetime }}{% endif %}
            · {{ article.article_view }} views
            · <span id="like-count">{{ article.article_likes }}</span> likes
        </p>
        <div class="e-content">{{ article.article_content|md }}</div>
        {% if article.article_status == 'Published' %}
        <button type="button" data-like-url="{{ url_for('reader_like', article_id=article.article_id) }}">♥ Like</button>
        {% endif %}
    </article>

    <h3>Comments ({{ comments|length }})</h3>
    {% for c in comments %}
    <div style="margin-bottom:1rem;">
        <strong>{{ c.comment_name or 'Anonymous' }}</strong>
        {% if c.comment_datetime %}<span class="meta">{{ c.comment_datetime }}</span>{% endif %}
        <p style="margin:.25rem 0 0;">{{ c.comment_content }}</p>
    </div>
    {% else %}
    <p class="meta">No comments yet.</p>
    {% endfor %}

    <form method="post"
          action="{{ url_for('reader_send_comment', article_id=article.article_id, referrer=referrer) if referrer else url_for('reader_send_comment', article_id=article.article_id) }}">
        <input type="hidden" name="article_id" value="{{ article.article_id }}">
        <label for="commenter_name">Name</label>
        <input id="commenter_name" name="commenter_name">
        <label for="article_comment">Comment</label>
        <textarea id="article_comment" name="article_comment" rows="4"></textarea>
        <button type="submit" name="action" value="Send">Send</button>
    </form>

    <p style="margin-top:2rem;">
    {% if referrer == AUTHOR_REFERRER %}
        <a href="{{ url_for('author_dashboard') }}">← Back to dashboard</a>
    {% else %}
        <a href="{{ url_for('reader_homepage') }}">← All articles</a>
    {% endif %}
    </p>
""")


@app.route("/reader/like/<id:article_id>", methods=["POST"])
def reader_like(article_id):
    likes = like_article(article_id, db=get_db())
    return {"message": "Article Like Successfully.", "likes": likes}


@app.route("/reader/send-comment", methods=["POST"])
@app.route("/reader/send-comment/<id:article_id>", methods=["POST"])
def reader_send_comment(article_id=None):
    referrer = request.args.get("referrer")
    form_id = optional_id(request.form.get("article_id"))
    target = form_id if form_id is not None else article_id
    post_comment(
        target,
        request.form.get("commenter_name", ""),
        request.form.get("article_comment", ""),
        request.form.get("action", ""),
        viewer_id=current_author_id(),
        db=get_db(),
    )
    params ={"referrer": referrer} if referrer else {}
    return redirect(url_for("reader_article", article_id=target, **params))


###############################################################################
# RSS feed
###############################################################################
def _rss(rows, *, title, feed_url, site_url):
    """
    Build a valid RSS 2.0 document (single string).
    `rows` are published articles joined with their author's name.
    """
    items = []
    for a in rows:
        link = url_for("reader_article", article_id=a["article_id"], _external=True)
        body_html = render_markdown_html(a["article_content"])
        items.append(
            f"""
        <item>
          <title>{escape(a["article_title"] or "")}</title>
          <link>{link}</link>
          <guid isPermaLink="true">{link}</guid>
          <dc:creator>{escape(a["user_name"] or "")}</dc:creator>
          <pubDate>{_rfc2822(a["article_publication_datetime"])}</pubDate>
          <description><![CDATA[{body_html}]]></description>
        </item>"""
        )

    return f"""<?xml version="1.0" encoding="utf-8"?>
<rss version="2.0"
     xmlns:atom="http://www.w3.org/2005/Atom"
     xmlns:dc="http://purl.org/dc/elements/1.1/">
  <channel>
    <title>{escape(title)}</title>
    <link>{site_url}</link>
    <description>{escape(title)} – RSS</description>
    <generator>{SITE_NAME}</generator>
    <lastBuildDate>{_rfc2822(_stamp())}</lastBuildDate>
    <atom:link href="{feed_url}"
               rel="self"
               type="application/rss+xml" />
    {"".join(items)}
  </channel>
</rss>"""


@app.route("/reader/rss")
def reader_rss():
    rows = published_rows(db=get_db(), limit=RSS_LIMIT)
    xml = _rss(
        rows,
        title=SITE_NAME,
        feed_url=url_for("reader_rss", _external=True),
        site_url=request.url_root.rstrip("/"),
    )
    return app.response_class(xml, mimetype="application/rss+xml")


###############################################################################
# Response hooks + error pages
###############################################################################
@app.after_request
def sec_headers(resp):
    resp.headers.update(
        {
            "X-Frame-Options": "DENY",
            "X-Content-Type-Options": "nosniff",
            "Referrer-Policy": "strict-origin-when-cross-origin",
        }
    )
    return resp


def _wants_json() -> bool:
    return (
        request.endpoint in JSON_ENDPOINTS
        or request.accept_mimetypes.best == "application/json"
    )


def _error_page(exc: HTTPException, heading: str):
    if _wants_json():
        return {"message": exc.description}, exc.code
    return render_template_string(
        TEMPL_ERROR, title=SITE_NAME, heading=heading, message=exc.description
    ), exc.code


@app.errorhandler(400)
def bad_request(exc):
    return _error_page(exc, "Bad request")


@app.errorhandler(403)
def forbidden(exc):
    return _error_page(exc, "Forbidden")


@app.errorhandler(404)
def not_found(exc):
    """Site-wide “Not Found” page."""
    return _error_page(exc, "Page not found")


@app.errorhandler(500)
def internal_error(exc):
    """
    Generic 500 page. Store failures were already logged where they
    happened; Flask logs anything else before we get here.
    """
    return _error_page(exc, "Internal Server Error")


TEMPL_ERROR = wrap("""
  <h2 style="margin-top:0">{{ heading }}</h2>
  <p>{{ message }}</p>
  <p><a href="{{ url_for('index') }}">Back to the front page</a></p>
""")


###############################################################################
# main
###############################################################################
if __name__ == "__main__":
    import sys

    if len(sys.argv) > 1 and sys.argv[1] == "init":
        with app.app_context():
            init_db()
    else:
        app.run(debug=True)
