#!/usr/bin/env python
"""Fill the lock history table with sample rows for trying the report locally.

Usage: python scripts/seed_history.py [rows]
Reads DATABASE_URL the same way the API does.
"""
import os
import random
import sys
import time

from dotenv import load_dotenv

from lockstats.storage.database import Database
from lockstats.storage.models import LockHistory

load_dotenv()

CLASSNAMES = [
    "core\\task\\cron_task",
    "core\\task\\send_new_user_passwords_task",
    "tool_lockstats\\task\\cleanup_task",
    "mod_forum\\task\\cron_task",
    "core\\task\\search_index_task",
]


def main():
    count = int(sys.argv[1]) if len(sys.argv) > 1 else 200

    database = Database(database_url=os.getenv("DATABASE_URL", "sqlite:///./lockstats.db"))
    database.create_tables()

    now = int(time.time())
    session = database.get_session()
    try:
        for _ in range(count):
            taskid = random.randrange(len(CLASSNAMES))
            lockcount = random.randint(1, 5)
            session.add(
                LockHistory(
                    taskid=taskid + 1,
                    classname=CLASSNAMES[taskid],
                    duration=round(random.uniform(0, 600) * lockcount, 4),
                    lockcount=lockcount,
                    # Some rows fall outside the one week window
                    released=now - random.randint(0, 14 * 24 * 60 * 60),
                )
            )
        session.commit()
    finally:
        session.close()

    print(f"✓ Added {count} lock history rows")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
