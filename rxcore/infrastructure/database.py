from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from rxcore.core.config import settings

# Base model
Base = declarative_base()


def _install_sqlite_begin(engine) -> None:
    """Let SQLAlchemy emit BEGIN so a connection can ask for BEGIN IMMEDIATE"""

    @event.listens_for(engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        if conn.get_execution_options().get("sqlite_immediate"):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def build_engine(database_url: str, echo: bool = False):
    """Create a synchronous engine for the record store"""
    if "sqlite" in database_url.lower():
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
            # single shared connection so every session sees the same database
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **kwargs)
        _install_sqlite_begin(engine)
        return engine

    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=echo
    )


def build_session_factory(engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False
    )


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
SessionLocal = build_session_factory(engine)


def init_db(bind=None) -> None:
    """Initialize database tables"""
    # models register themselves on Base at import
    import rxcore.infrastructure.record_store  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)

