import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from storepos.core.config import DATABASE_URL

logger = logging.getLogger(__name__)

if not DATABASE_URL:
    raise ValueError("DATABASE_URL missing in .env")

logger.info("Using database %s", DATABASE_URL.split("@")[-1])

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    DATABASE_URL,
    pool_pre_ping=True,
    connect_args=connect_args,
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
