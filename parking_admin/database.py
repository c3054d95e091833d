import os
import logging
from dotenv import load_dotenv
from redis import Redis
from sqlalchemy import inspect
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine, SQLModel, Session

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./parking_admin.db")
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"


def build_engine(url: str, echo: bool = False):
    """Engine for the reservation database.

    SQLite connections are shared with the threadpool FastAPI runs sync
    endpoints and frame matching on, and an in-memory SQLite database keeps a
    single connection so every session sees the same tables.
    """
    if not url.startswith("sqlite"):
        return create_engine(url, echo=echo)

    options = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        options["poolclass"] = StaticPool
    return create_engine(url, echo=echo, **options)


engine = build_engine(DATABASE_URL, echo=SQL_ECHO)
redis_client = Redis.from_url(REDIS_URL)


def init_db(bind=None):
    # Registers the tables on SQLModel.metadata
    from parking_admin.models import parking_models  # noqa: F401

    bind = bind or engine
    try:
        existing_tables = set(inspect(bind).get_table_names())
        missing = [name for name in SQLModel.metadata.tables if name not in existing_tables]

        # ONLY THE MISSING TABLES ARE CREATED, EXISTING DATA IS LEFT ALONE
        if missing:
            SQLModel.metadata.create_all(bind)
            logger.info(f"Created tables: {', '.join(missing)}")
        else:
            logger.info("Tables already exist, skipping creation")
    except Exception as e:
        logger.error(f"Error in initializing the database: {e}")
        raise


def get_db():
    try:
        with Session(engine) as session:
            yield session
    except Exception as e:
        logger.error(f"Error during database session: {e}")
        raise
