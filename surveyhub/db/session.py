from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from surveyhub.core.config.settings import get_settings

DATABASE_URL = get_settings().DATABASE_URL

# check_same_thread is SQLite specific and lets the threadpool share a connection
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

# Create engine
engine = create_engine(DATABASE_URL, connect_args=connect_args)

# Create session
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Dependency
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
