import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import event, inspect
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from ..config import settings
from ..models.models import Category

log = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    {"name": "Food & Drink", "color": "#f97316", "icon": "utensils"},
    {"name": "Transport", "color": "#3b82f6", "icon": "bus"},
    {"name": "Accommodation", "color": "#8b5cf6", "icon": "bed"},
    {"name": "Activities", "color": "#10b981", "icon": "ticket"},
    {"name": "Shopping", "color": "#ec4899", "icon": "shopping-bag"},
    {"name": "Other", "color": "#6b7280", "icon": "circle"},
]

_engine = None


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    if dbapi_connection.__class__.__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def enable_sqlite_transactions(engine):
    """Let SQLAlchemy own BEGIN so a SAVEPOINT never commits on its own."""

    @event.listens_for(engine, "connect")
    def disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def get_engine():
    global _engine
    if not _engine:
        Path(settings.SQLITE_FILE).parent.mkdir(parents=True, exist_ok=True)
        _engine = create_engine(
            f"sqlite:///{settings.SQLITE_FILE}",
            connect_args={"check_same_thread": False},
        )
        enable_sqlite_transactions(_engine)
    return _engine


def get_session():
    with Session(get_engine()) as session:
        yield session


def _alembic_config() -> Config:
    alembic_folder = Path(__file__).resolve().parent.parent / "alembic"
    cfg = Config()
    cfg.set_main_option("script_location", str(alembic_folder))
    cfg.set_main_option("sqlalchemy.url", f"sqlite:///{settings.SQLITE_FILE}")
    return cfg


async def init_and_migrate_db():
    engine = get_engine()
    cfg = _alembic_config()
    tables = inspect(engine).get_table_names()

    if "alembic_version" not in tables:
        SQLModel.metadata.create_all(engine)
        command.stamp(cfg, "head")
        log.info("Fresh database created at %s", settings.SQLITE_FILE)
        return

    command.upgrade(cfg, "head")


def init_user_data(session: Session, user_id: int):
    for category in DEFAULT_CATEGORIES:
        session.add(Category(**category, is_default=True, user_id=user_id))
    session.commit()
