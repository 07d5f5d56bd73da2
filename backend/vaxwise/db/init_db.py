from vaxwise.db.session import engine
from vaxwise.db.base import Base

# IMPORTANT: import models so they register with Base.metadata
import vaxwise.db.models  # noqa: F401

def init_db() -> None:
    Base.metadata.create_all(bind=engine)


def drop_db() -> None:
    Base.metadata.drop_all(bind=engine)
