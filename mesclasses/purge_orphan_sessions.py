"""
Maintenance script: list (and optionally delete) sessions left behind after a
cycle or class was deleted. Deleting a cycle keeps its sessions, so they pile
up with a cycle_id or class name that nothing refers to any more.

Dry run by default:
  mesclasses-purge-sessions
Delete them:
  mesclasses-purge-sessions --apply

Reads MONGO_URL (and optionally DB_NAME) from the environment or mesclasses/.env
"""
import argparse

from pymongo import MongoClient

from mesclasses import config
from mesclasses.hierarchy import find_orphan_sessions
from mesclasses.models import ClassRecord, CycleRecord, SessionRecord, StudentRecord


def load(db, collection, model):
    return [model.model_validate(doc) for doc in db[collection].find({}, {"_id": 0})]


def main(argv=None):
    parser = argparse.ArgumentParser(description="Find sessions whose cycle or class no longer exists.")
    parser.add_argument("--apply", action="store_true", help="delete the orphaned sessions")
    args = parser.parse_args(argv)

    client = MongoClient(config.mongo_url(), serverSelectionTimeoutMS=10000)
    db = client[config.db_name()]
    try:
        orphans = find_orphan_sessions(
            load(db, "sessions", SessionRecord),
            load(db, "classes", ClassRecord),
            load(db, "students", StudentRecord),
            load(db, "cycles", CycleRecord),
        )
        if not orphans:
            print("No orphaned sessions.")
            return 0
        for session in orphans:
            print(f"  {session.id}  {session.date}  {session.class_name}  cycle={session.cycle_id or '-'}")
        if not args.apply:
            print(f"{len(orphans)} orphaned session(s). Re-run with --apply to delete them.")
            return 0
        result = db.sessions.delete_many({"id": {"$in": [s.id for s in orphans]}})
        print(f"Deleted {result.deleted_count} orphaned session(s).")
        return 0
    finally:
        client.close()


if __name__ == "__main__":
    raise SystemExit(main())
