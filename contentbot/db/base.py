from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from contentbot.config import settings

DATABASE_URL = settings.database_url  # default: sqlite:///./contentbot.db


def make_engine(url: str):
    return create_engine(
        url,
        connect_args={"check_same_thread": False} if url.startswith("sqlite") else {}
    )


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()
