from __future__ import annotations

import logging
import sys

from osoul.config import Settings
from osoul.database.db import Database

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(asctime)s %(message)s")
log = logging.getLogger("init_db")


def main() -> None:
    settings = Settings.from_env()
    database = Database(settings.database_url)
    try:
        if settings.database_url.startswith("sqlite"):
            # schema.sql is PostgreSQL DDL; SQLite gets the ORM tables
            database.create_all()
            log.info("SQLite tables created at %s", settings.database_url)
        else:
            database.run_schema_file()
    except Exception:
        log.exception("Schema initialization failed")
        sys.exit(1)
    finally:
        database.dispose()


if __name__ == "__main__":
    main()
