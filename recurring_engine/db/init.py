"""Initialize database tables."""
import logging
from typing import Optional

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel

# Imported for their table registration side effect
from recurring_engine.models.task import Task  # noqa: F401
from recurring_engine.models.recurring_completion import RecurringCompletion  # noqa: F401
from recurring_engine.db.config import engine as default_engine

logger = logging.getLogger(__name__)


def init_db(engine: Optional[Engine] = None):
    """Create all tables in the database."""
    logger.info("Creating all tables...")
    SQLModel.metadata.create_all(engine or default_engine)
    logger.info("Tables created successfully.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
