"""
Durable string-key / string-value state used to persist the client session.

Two backends share the same contract:

- ``SqlStateStore``: one row per key in ``client_state``; the default, pointing
  at a local SQLite file so state survives restarts.
- ``RedisStateStore``: plain string keys under a namespace prefix.

Multi-key writes and deletes are atomic in both backends, so readers never
observe half of a token/user pair.
"""
import logging
from typing import Dict, Iterable, Optional

import redis
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from staffboard.config.settings import Settings
from staffboard.storage.database import (
    StateEntryModel,
    create_state_engine,
    init_db,
    make_session_factory,
)

logger = logging.getLogger(__name__)


class StateStore:
    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_many(self, values: Dict[str, str]) -> None:
        raise NotImplementedError

    def delete_many(self, keys: Iterable[str]) -> None:
        raise NotImplementedError

    def health_check(self) -> bool:
        raise NotImplementedError

    def close(self) -> None:
        pass


class SqlStateStore(StateStore):
    def __init__(self, session_factory: sessionmaker, engine=None):
        self.session_factory = session_factory
        self.engine = engine

    @classmethod
    def from_dsn(cls, dsn: str) -> "SqlStateStore":
        engine = create_state_engine(dsn)
        init_db(engine)
        return cls(make_session_factory(engine), engine=engine)

    def get(self, key: str) -> Optional[str]:
        with self.session_factory() as db:
            model = db.query(StateEntryModel).filter(StateEntryModel.key == key).first()
            if not model:
                return None
            return model.value

    def set_many(self, values: Dict[str, str]) -> None:
        with self.session_factory() as db:
            try:
                for key, value in values.items():
                    self._upsert(db, key, value)
                db.commit()
            except SQLAlchemyError:
                db.rollback()
                raise

    def delete_many(self, keys: Iterable[str]) -> None:
        keys = list(keys)
        with self.session_factory() as db:
            try:
                db.query(StateEntryModel).filter(StateEntryModel.key.in_(keys)).delete(
                    synchronize_session=False
                )
                db.commit()
            except SQLAlchemyError:
                db.rollback()
                raise

    def health_check(self) -> bool:
        try:
            with self.session_factory() as db:
                db.query(StateEntryModel).first()
            return True
        except SQLAlchemyError as exc:
            logger.warning(f"State store health check failed: {exc}")
            return False

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()

    @staticmethod
    def _upsert(db: Session, key: str, value: str) -> None:
        existing = db.query(StateEntryModel).filter(StateEntryModel.key == key).first()
        if existing:
            existing.value = value
        else:
            db.add(StateEntryModel(key=key, value=value))


class RedisStateStore(StateStore):
    def __init__(self, redis_client, namespace: str = "staffboard:state"):
        self.redis_client = redis_client
        self.namespace = namespace

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisStateStore":
        return cls(redis.from_url(redis_url, decode_responses=True))

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def get(self, key: str) -> Optional[str]:
        return self.redis_client.get(self._key(key))

    def set_many(self, values: Dict[str, str]) -> None:
        pipe = self.redis_client.pipeline(transaction=True)
        for key, value in values.items():
            pipe.set(self._key(key), value)
        pipe.execute()

    def delete_many(self, keys: Iterable[str]) -> None:
        names = [self._key(k) for k in keys]
        if names:
            self.redis_client.delete(*names)

    def health_check(self) -> bool:
        """Check Redis connection."""
        try:
            self.redis_client.ping()
            return True
        except redis.RedisError as exc:
            logger.warning(f"Redis health check failed: {exc}")
            return False

    def close(self) -> None:
        self.redis_client.close()


def build_state_store(settings: Settings) -> StateStore:
    if settings.state_backend == "redis":
        logger.info("Using redis state store")
        return RedisStateStore.from_url(settings.redis_url)
    logger.info("Using SQL state store")
    return SqlStateStore.from_dsn(settings.state_dsn)
