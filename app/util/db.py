from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel
import structlog

from app.internal.env_settings import Settings

logger = structlog.stdlib.get_logger()

db = Settings().db
if db.use_postgres:
    engine = create_engine(
        f"postgresql://{db.postgres_user}:{db.postgres_password}@{db.postgres_host}:{db.postgres_port}/{db.postgres_db}?sslmode={db.postgres_ssl_mode}",
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        pool_pre_ping=db.pool_pre_ping,
    )
else:
    sqlite_path = Settings().get_sqlite_path()
    engine = create_engine(
        f"sqlite+pysqlite:///{sqlite_path}",
        connect_args={"check_same_thread": False},
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_pre_ping=db.pool_pre_ping,
    )

logger.info(
    "Database connection pool configured",
    database_type="PostgreSQL" if db.use_postgres else "SQLite",
    pool_size=db.pool_size,
    max_overflow=db.max_overflow,
    pool_timeout=db.pool_timeout,
    pool_pre_ping=db.pool_pre_ping,
)


@event.listens_for(Engine, "connect")
def enable_sqlite_foreign_keys(dbapi_conn, connection_record):
    """User books cascade with their user and book, which sqlite only honours with this pragma."""
    if type(dbapi_conn).__module__.startswith("sqlite3"):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_db_and_tables(bind: Engine | None = None):
    # models must be imported so their tables are registered on the metadata
    import app.internal.models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)
    logger.info("Database tables created")


def get_session():
    with Session(engine) as session:
        yield session
