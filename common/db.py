from __future__ import annotations

from functools import lru_cache
from typing import Callable, Iterator, Optional
from urllib.parse import quote_plus
import logging

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    Table,
    create_engine,
    func,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .config import DatabaseSettings, get_settings


logger = logging.getLogger(__name__)

metadata = MetaData()

# Nombres de columnas heredados del firmware/dashboard existente (suhu = temperatura).
data_sensor = Table(
    "data_sensor",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("suhu", Float),
    Column("humidity", Float),
    Column("lux", Float, nullable=True),
    Column("timestamp", DateTime, server_default=func.now()),
)


def build_sqlalchemy_url(settings: DatabaseSettings) -> str:
    if settings.url:
        return settings.url

    # quote_plus para contraseñas con caracteres especiales.
    return (
        f"mysql+pymysql://{quote_plus(settings.user)}:{quote_plus(settings.password)}"
        f"@{settings.host}:{settings.port}/{settings.name}"
    )


def create_db_engine(settings: Optional[DatabaseSettings] = None) -> Engine:
    settings = settings or get_settings().db
    url = build_sqlalchemy_url(settings)

    # Log básico de parámetros de conexión (sin contraseña)
    logger.info(
        "[DB] Creating engine host=%s port=%s db=%s user=%s pool=%d+%d",
        settings.host,
        settings.port,
        settings.name,
        settings.user,
        settings.pool_size,
        settings.max_overflow,
    )

    kwargs = {"pool_pre_ping": True, "future": True}
    if not url.startswith("sqlite"):
        kwargs.update(
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            pool_recycle=300,
        )
    return create_engine(url, **kwargs)


@lru_cache
def engine_for(settings: DatabaseSettings) -> Engine:
    """Un pool por configuración: el bridge y el API comparten el mismo engine."""
    return create_db_engine(settings)


def ensure_schema(engine: Engine) -> None:
    """Crea la tabla data_sensor si no existe."""
    metadata.create_all(engine, checkfirst=True)
    logger.info("[DB] Schema ready (data_sensor)")


@lru_cache
def session_factory_for(settings: DatabaseSettings) -> sessionmaker:
    return sessionmaker(bind=engine_for(settings), autocommit=False, autoflush=False, future=True)


def session_dependency(settings: DatabaseSettings) -> Callable[[], Iterator[Session]]:
    """Dependencia FastAPI ligada a una configuración concreta de BD."""

    def _get_db() -> Iterator[Session]:
        db = session_factory_for(settings)()
        try:
            yield db
        finally:
            db.close()

    return _get_db


def get_db() -> Iterator[Session]:
    yield from session_dependency(get_settings().db)()
