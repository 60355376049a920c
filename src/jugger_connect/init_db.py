"""Create the messaging tables on the configured database."""

from jugger_connect.core.logging_config import configure_logging
from jugger_connect.db.session import create_tables


def init_db() -> None:
    """Initialize the database by creating all tables."""
    create_tables()


if __name__ == "__main__":
    configure_logging()
    init_db()
    print("Database initialized.")
