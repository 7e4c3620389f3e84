"""Generate database sessions"""

from typing import Iterator, Optional

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from arena.core.config import ArenaSettings
from arena.db.schema import Base


def create_session_factory(settings: Optional[ArenaSettings] = None) -> sessionmaker[Session]:
    """Engine for the configured database URL, with all tables created."""
    settings = settings or ArenaSettings.from_env()
    engine: Engine = create_engine(settings.database_url)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine)


def get_db(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()
