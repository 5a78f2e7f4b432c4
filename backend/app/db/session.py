"""
Database engine and request-scoped sessions
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

from app.core.config import settings
from app.logging_config import get_logger

logger = get_logger(__name__)

database_url = make_url(settings.database_url)

engine_options = {"echo": False, "pool_pre_ping": True}
if database_url.get_backend_name() == "sqlite":
    engine_options["connect_args"] = {"check_same_thread": False}
else:
    engine_options["pool_recycle"] = 3600

logger.info(
    "Database engine configured",
    extra={
        "backend": database_url.get_backend_name(),
        "host": database_url.host,
        "database": database_url.database,
    },
)

engine = create_engine(database_url, **engine_options)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """
    Yield a session for one request and close it afterwards.

    Services commit their own units of work; anything left uncommitted
    when the request ends is discarded by close().
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
