"""User directory with MongoDB primary storage and file-store fallback."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from threading import Lock
from typing import Any

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from identity.auth.models import AuthUser

LOGGER = logging.getLogger(__name__)

DEFAULT_ROLES = ("ROLE_USER", "ROLE_ADMIN")


class UserDirectory:
    """Lookup, existence checks and persistence of user identities and roles."""

    def __init__(self, app_root: Path) -> None:
        """Initialize repository storage backends."""
        self._fallback_dir = app_root / "runtime" / "identity_store"
        self._fallback_dir.mkdir(parents=True, exist_ok=True)
        self._users_file = self._fallback_dir / "users.json"
        self._roles_file = self._fallback_dir / "roles.json"
        self._file_lock = Lock()

        self._mongo_users = None
        self._mongo_roles = None

        mongo_uri = os.getenv("MONGODB_URI", "").strip()
        mongo_db = os.getenv("MONGODB_DB", "identity").strip() or "identity"

        if mongo_uri:
            try:
                client: MongoClient[dict[str, Any]] = MongoClient(
                    mongo_uri, serverSelectionTimeoutMS=3000
                )
                client.admin.command("ping")
                db = client[mongo_db]
                self._mongo_users = db["identity_users"]
                self._mongo_roles = db["identity_roles"]
                self._mongo_users.create_index("email", unique=True)
                self._mongo_users.create_index("username", unique=True)
                self._mongo_roles.create_index("name", unique=True)
            except PyMongoError:
                LOGGER.exception("mongo_unavailable_using_file_store")
                self._mongo_users = None
                self._mongo_roles = None

        for role in DEFAULT_ROLES:
            self.upsert_role(role)

    def _read_json_file(self, path: Path) -> list[dict[str, Any]]:
        """Read list payload from JSON file with empty fallback."""
        if not path.exists():
            return []
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            LOGGER.warning("identity_store_unreadable", extra={"path": str(path)})
            return []
        return payload if isinstance(payload, list) else []

    def _write_json_file(self, path: Path, items: list[dict[str, Any]]) -> None:
        """Persist list payload to JSON file."""
        path.write_text(json.dumps(items, ensure_ascii=False, indent=2), encoding="utf-8")

    def _find_user(self, field: str, value: str) -> AuthUser | None:
        key = value.strip().lower()
        if not key:
            return None
        if self._mongo_users is not None:
            doc = self._mongo_users.find_one({field: key}, {"_id": 0})
            return AuthUser.model_validate(doc) if doc else None

        with self._file_lock:
            rows = self._read_json_file(self._users_file)
        for row in rows:
            if str(row.get(field, "")).strip().lower() == key:
                return AuthUser.model_validate(row)
        return None

    def find_by_username(self, username: str) -> AuthUser | None:
        return self._find_user("username", username)

    def find_by_email(self, email: str) -> AuthUser | None:
        return self._find_user("email", email)

    def exists_by_username(self, username: str) -> bool:
        return self.find_by_username(username) is not None

    def exists_by_email(self, email: str) -> bool:
        return self.find_by_email(email) is not None

    def save(self, user: AuthUser) -> AuthUser:
        """Create or replace a user, matched by ``user_id``."""
        user = user.model_copy(
            update={
                "username": user.username.strip().lower(),
                "email": user.email.strip().lower(),
            }
        )
        doc = user.model_dump(mode="json")
        if self._mongo_users is not None:
            self._mongo_users.update_one({"user_id": user.user_id}, {"$set": doc}, upsert=True)
            return user

        with self._file_lock:
            items = self._read_json_file(self._users_file)
            next_items = [row for row in items if row.get("user_id") != user.user_id]
            next_items.append(doc)
            self._write_json_file(self._users_file, next_items)
        return user

    def role_exists(self, name: str) -> bool:
        if self._mongo_roles is not None:
            return self._mongo_roles.find_one({"name": name}) is not None
        with self._file_lock:
            return any(row.get("name") == name for row in self._read_json_file(self._roles_file))

    def upsert_role(self, name: str) -> None:
        if self._mongo_roles is not None:
            self._mongo_roles.update_one({"name": name}, {"$set": {"name": name}}, upsert=True)
            return
        with self._file_lock:
            items = self._read_json_file(self._roles_file)
            if not any(row.get("name") == name for row in items):
                items.append({"name": name})
                self._write_json_file(self._roles_file, items)
