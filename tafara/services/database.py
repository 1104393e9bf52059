"""Database setup for the hosted store tables.

The URL comes from `DATABASE_URL`; the default is a SQLite file at the
project root so the server finds the same database regardless of the
working directory it is launched from.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from tafara.services.settings import get_settings

DATABASE_URL = get_settings().database_url

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()
