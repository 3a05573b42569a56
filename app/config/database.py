# app/config/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from .settings import settings


def _engine_kwargs(url: str) -> dict:
    kwargs = {
        "pool_pre_ping": True,
        "echo": settings.debug
    }
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_recycle"] = 300
    return kwargs


# Create engines
engine = create_engine(settings.database_url, **_engine_kwargs(settings.database_url))

if settings.recaudo_url == settings.database_url:
    recaudo_engine = engine
else:
    recaudo_engine = create_engine(settings.recaudo_url, **_engine_kwargs(settings.recaudo_url))

if settings.readonly_url == settings.database_url:
    readonly_engine = engine
else:
    readonly_engine = create_engine(settings.readonly_url, **_engine_kwargs(settings.readonly_url))

# Session factories
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
RecaudoSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=recaudo_engine)
ReadonlySessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=readonly_engine)


# Database dependencies
def get_db():
    """Database dependency for FastAPI"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_recaudo_db():
    """Sesión de solo lectura sobre el libro de recaudo"""
    db = RecaudoSessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_readonly_db():
    """Sesión sobre el sistema tributario (estados de cuenta EC/ICS)"""
    db = ReadonlySessionLocal()
    try:
        yield db
    finally:
        db.close()
