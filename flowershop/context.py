from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, configure_mappers

from flowershop import config
from flowershop.db import Base, make_engine, make_session_factory
from flowershop.logger import logger


@dataclass
class AppContext:
    """Всё, что живёт от старта до остановки приложения: engine и фабрика сессий."""

    engine: Engine
    session_factory: sessionmaker

    @classmethod
    def create(cls, database_url: Optional[str] = None) -> "AppContext":
        engine = make_engine(database_url or config.DATABASE_URL)
        return cls(engine=engine, session_factory=make_session_factory(engine))

    def init_schema(self) -> None:
        # Импортируем все модели до create_all(),
        # чтобы SQLAlchemy знал про классы и связи
        import flowershop.models  # noqa: F401

        configure_mappers()
        Base.metadata.create_all(bind=self.engine)
        logger.info("schema_ready", url=self.engine.url.render_as_string(hide_password=True))

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("engine_disposed")
