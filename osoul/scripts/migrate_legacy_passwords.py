"""
One-shot move of plain-text legacy passwords to bcrypt:

    python -m osoul.scripts.migrate_legacy_passwords

Once every row is migrated the server can run with PASSWORD_POLICY=strict.
"""
from __future__ import annotations

import logging
from typing import Dict

from sqlalchemy.orm import Session

from osoul.config import Settings
from osoul.constants import BCRYPT_PREFIXES
from osoul.database.db import Database, atomic
from osoul.repositories import UserRepository
from osoul.utils.auth import hash_password

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(asctime)s %(message)s")
log = logging.getLogger("migrate_passwords")


def migrate(db: Session) -> Dict[str, int]:
    counts = {"hashed": 0, "already_bcrypt": 0, "skipped": 0}
    with atomic(db):
        for user in UserRepository(db).with_legacy_password():
            legacy = user.legacy_password
            if user.password_hash and user.password_hash.startswith(BCRYPT_PREFIXES):
                # a real hash already wins over the old column
                counts["skipped"] += 1
            elif legacy.startswith(BCRYPT_PREFIXES):
                user.password_hash = legacy
                counts["already_bcrypt"] += 1
            else:
                user.password_hash = hash_password(legacy)
                counts["hashed"] += 1
            user.legacy_password = None
            log.info("Migrated user id=%s", user.id)
    return counts


def main() -> None:
    settings = Settings.from_env()
    database = Database(settings.database_url)
    db = database.session()
    try:
        counts = migrate(db)
        log.info(
            "Done: hashed=%d already_bcrypt=%d skipped=%d",
            counts["hashed"], counts["already_bcrypt"], counts["skipped"],
        )
    finally:
        db.close()
        database.dispose()


if __name__ == "__main__":
    main()
