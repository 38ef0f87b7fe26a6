from sqlalchemy import Engine, event
from sqlmodel import Session, SQLModel, create_engine

from liftlog.config import get_settings

settings = get_settings()


def enable_sqlite_pragmas(engine: Engine) -> None:
    """Turn on foreign key enforcement and WAL for every new SQLite connection."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()


def build_engine(database_url: str, echo: bool = False) -> Engine:
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo)
    built = create_engine(database_url, connect_args={"check_same_thread": False}, echo=echo)
    enable_sqlite_pragmas(built)
    return built


engine = build_engine(settings.database_url, echo=settings.debug)


def create_db_and_tables() -> None:
    SQLModel.metadata.create_all(engine)


def get_session():
    with Session(engine) as session:
        yield session
