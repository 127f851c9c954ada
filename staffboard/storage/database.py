from datetime import datetime

from sqlalchemy import create_engine, Column, String, Text, DateTime
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class StateEntryModel(Base):
    __tablename__ = "client_state"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


def create_state_engine(dsn: str) -> Engine:
    connect_args = {}
    if dsn.startswith("sqlite"):
        # The app and TestClient touch the engine from different threads
        connect_args["check_same_thread"] = False
    return create_engine(dsn, pool_pre_ping=True, echo=False, connect_args=connect_args)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)
