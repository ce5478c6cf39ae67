from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from studio_auth.config import settings

# check_same_thread is only needed for SQLite under the threaded test client / uvicorn workers
connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
