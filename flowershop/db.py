from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def make_engine(database_url: str) -> Engine:
    """Создаёт engine под конкретную БД (PostgreSQL в проде, SQLite локально/в тестах)."""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url == "sqlite://" or ":memory:" in database_url:
            # одна in-memory БД на все соединения
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, **kwargs)

        # SQLite по умолчанию не проверяет внешние ключи
        @event.listens_for(engine, "connect")
        def _enable_fk(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


# Dependency для FastAPI
def get_db(request: Request):
    db = request.app.state.ctx.session_factory()
    try:
        yield db
    finally:
        db.close()
