import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from app.core.config import settings

logger = logging.getLogger(__name__)

# -----------------------
# Database URL
# -----------------------
DATABASE_URL = settings.database_url

# Hide password in logs
safe_db_url = (
    DATABASE_URL.replace(settings.db_password, "****")
    if settings.db_password
    else DATABASE_URL
)
logger.info(f"Using database: {safe_db_url}")


# -----------------------
# SQLAlchemy engine
# -----------------------
def build_engine(url: str):
    if url.startswith("sqlite"):
        # In-memory databases must share one connection across threads
        pool_kwargs = {"poolclass": StaticPool} if ":memory:" in url else {}
        return create_engine(
            url,
            echo=settings.db_echo,
            connect_args={"check_same_thread": False},
            **pool_kwargs,
        )

    return create_engine(
        url,
        echo=settings.db_echo,
        poolclass=QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=1800,
        pool_pre_ping=True,
        connect_args={"connect_timeout": 5},
    )


engine = build_engine(DATABASE_URL)

# -----------------------
# Session and Base
# -----------------------
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


# -----------------------
# Dependency for FastAPI
# -----------------------
def get_db():
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database error occurred: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()


def check_connection() -> bool:
    """Open a connection once; used at startup and by the health check."""
    try:
        with engine.connect():
            return True
    except Exception as e:
        logger.error(f"Failed to connect to database: {str(e)}")
        return False
