import os
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from dotenv import load_dotenv

load_dotenv(Path(__file__).with_name(".env"))

Base = declarative_base()


def database_url() -> str:
    """DATABASE_URL, or the certexam.db SQLite file beside the package."""
    url = (os.getenv("DATABASE_URL") or "").strip()
    return url or f"sqlite:///{Path(__file__).with_name('certexam.db')}"


def make_engine(url: str):
    if url.startswith("sqlite"):
        # connections cross FastAPI's threadpool; writers wait up to 15s for the lock
        return create_engine(url, connect_args={"check_same_thread": False, "timeout": 15})
    return create_engine(url, pool_pre_ping=True)


DATABASE_URL = database_url()
engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
