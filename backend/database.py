# backend/database.py
import logging
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

Base = declarative_base()


class Database:
    """Owns the engine and session factory for one application instance.

    Built in the app lifespan and disposed on shutdown; request handlers get
    sessions through ``get_db``.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        if url.startswith("sqlite"):
            connect_args = {"check_same_thread": False}  # SQLite only
        else:
            connect_args = {}

        self.engine: Engine = create_engine(url, connect_args=connect_args, echo=echo, future=True)
        if url.startswith("sqlite"):
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def create_all(self) -> None:
        import_models()
        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        return self.SessionLocal()

    def dispose(self) -> None:
        logger.info("Disposing database engine")
        self.engine.dispose()


# Import every model module so all tables are registered on Base.metadata
def import_models() -> None:
    import models.users  # noqa: F401
    import models.category  # noqa: F401
    import models.shop  # noqa: F401
    import models.product  # noqa: F401
    import models.supplier  # noqa: F401
    import models.stock  # noqa: F401
    import models.order  # noqa: F401
    import models.log  # noqa: F401


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE rules unless foreign keys are switched on per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.db.session()
    try:
        yield db
    finally:
        db.close()
