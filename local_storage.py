import copy
import json
import logging
import os
import threading
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from models import timestamp_or_epoch

logger = logging.getLogger(__name__)

_COLLECTIONS = ("Users", "Habits", "Badges", "ShopItems", "Chats", "Messages")


def _json_default(value):
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _ts_sort_key(doc: Dict[str, Any], key: str):
    return timestamp_or_epoch(doc.get(key))


def _new_id() -> str:
    return uuid.uuid4().hex[:20]


class _LocalTransaction:
    """Reads see committed data; writes are buffered until the transaction body returns."""

    def __init__(self, store: "LocalDocumentStore"):
        self._store = store
        self._writes: List[Callable[[Dict[str, Any]], None]] = []

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self._store.get_user(user_id)

    def get_habit(self, user_id: str, habit_id: str) -> Optional[Dict[str, Any]]:
        return self._store.get_habit(user_id, habit_id)

    def list_habits(self, user_id: str) -> List[Tuple[str, Dict[str, Any]]]:
        return self._store.list_habits(user_id)

    def get_shop_item(self, item_id: str) -> Optional[Dict[str, Any]]:
        return self._store.get_shop_item(item_id)

    def update_user(self, user_id: str, patch: Dict[str, Any]):
        patch = copy.deepcopy(patch)
        self._writes.append(lambda data: data["Users"][user_id].update(patch))

    def update_habit(self, user_id: str, habit_id: str, patch: Dict[str, Any]):
        patch = copy.deepcopy(patch)
        self._writes.append(lambda data: data["Habits"][user_id][habit_id].update(patch))

    def create_chat(self, participants: List[str]) -> str:
        chat_id = _new_id()
        doc = {"participants": list(participants)}
        self._writes.append(lambda data: data["Chats"].__setitem__(chat_id, doc))
        return chat_id

    def _commit(self, data: Dict[str, Any]) -> Dict[str, Any]:
        staged = copy.deepcopy(data)
        for write in self._writes:
            write(staged)
        return staged


class LocalDocumentStore:
    """Simple local document store used when Firestore is unavailable.

    Mirrors the Firestore layout (Users, Users/*/Habits, Badges, ShopItems,
    Chats, Chats/*/Messages) in one JSON file. Pass storage_file=None to keep
    everything in memory.
    """

    def __init__(self, storage_file: Optional[str] = "local_store.json"):
        self.storage_file = storage_file
        self._lock = threading.RLock()
        self._data = self._load()

    def _load(self) -> Dict[str, Dict[str, Any]]:
        """Load documents from the local JSON file"""
        data = {name: {} for name in _COLLECTIONS}
        if self.storage_file and os.path.exists(self.storage_file):
            try:
                with open(self.storage_file, "r", encoding="utf-8") as f:
                    data.update(json.load(f))
            except (json.JSONDecodeError, IOError) as e:
                logger.error("[local_storage] Error loading %s: %s", self.storage_file, e)
        return data

    def _save(self):
        """Save documents to the local JSON file"""
        if not self.storage_file:
            return
        try:
            with open(self.storage_file, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2, default=_json_default)
        except IOError as e:
            logger.error("[local_storage] Error saving %s: %s", self.storage_file, e)

    # ---------------- Transactions ---------------- #
    def run_transaction(self, fn: Callable[[Any], Any]):
        """Run fn(txn) atomically: either every buffered write lands or none does."""
        with self._lock:
            txn = _LocalTransaction(self)
            result = fn(txn)
            if txn._writes:
                self._data = txn._commit(self._data)
                self._save()
            return result

    # ---------------- Users ---------------- #
    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._data["Users"].get(user_id)
            return copy.deepcopy(doc) if doc is not None else None

    def list_users(self) -> List[Tuple[str, Dict[str, Any]]]:
        with self._lock:
            return [(uid, copy.deepcopy(doc)) for uid, doc in self._data["Users"].items()]

    def find_user_by_username(self, username: str) -> Optional[Tuple[str, Dict[str, Any]]]:
        with self._lock:
            for uid, doc in self._data["Users"].items():
                if doc.get("username") == username:
                    return uid, copy.deepcopy(doc)
        return None

    def create_user(self, user_id: str, data: Dict[str, Any]):
        with self._lock:
            self._data["Users"][user_id] = copy.deepcopy(data)
            self._data["Habits"].setdefault(user_id, {})
            self._save()

    def update_user(self, user_id: str, patch: Dict[str, Any]):
        self.run_transaction(lambda txn: txn.update_user(user_id, patch))

    # ---------------- Habits ---------------- #
    def get_habit(self, user_id: str, habit_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._data["Habits"].get(user_id, {}).get(habit_id)
            return copy.deepcopy(doc) if doc is not None else None

    def list_habits(self, user_id: str) -> List[Tuple[str, Dict[str, Any]]]:
        with self._lock:
            habits = self._data["Habits"].get(user_id, {})
            ordered = sorted(habits.items(), key=lambda item: _ts_sort_key(item[1], "createdAt"))
            return [(hid, copy.deepcopy(doc)) for hid, doc in ordered]

    def add_habit(self, user_id: str, data: Dict[str, Any]) -> str:
        habit_id = _new_id()
        with self._lock:
            self._data["Habits"].setdefault(user_id, {})[habit_id] = copy.deepcopy(data)
            self._save()
        return habit_id

    def update_habit(self, user_id: str, habit_id: str, patch: Dict[str, Any]):
        self.run_transaction(lambda txn: txn.update_habit(user_id, habit_id, patch))

    def delete_habit(self, user_id: str, habit_id: str):
        with self._lock:
            self._data["Habits"].get(user_id, {}).pop(habit_id, None)
            self._save()

    # ---------------- Badges & shop ---------------- #
    def list_badges(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._data["Badges"])

    def set_badge(self, badge_id: str, data: Dict[str, Any]):
        with self._lock:
            self._data["Badges"][badge_id] = copy.deepcopy(data)
            self._save()

    def list_shop_items(self) -> List[Tuple[str, Dict[str, Any]]]:
        with self._lock:
            return [(iid, copy.deepcopy(doc)) for iid, doc in self._data["ShopItems"].items()]

    def get_shop_item(self, item_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._data["ShopItems"].get(item_id)
            return copy.deepcopy(doc) if doc is not None else None

    def set_shop_item(self, item_id: str, data: Dict[str, Any]):
        with self._lock:
            self._data["ShopItems"][item_id] = copy.deepcopy(data)
            self._save()

    # ---------------- Chats ---------------- #
    def get_chat(self, chat_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._data["Chats"].get(chat_id)
            return copy.deepcopy(doc) if doc is not None else None

    def find_chats_with(self, user_id: str) -> List[Tuple[str, Dict[str, Any]]]:
        with self._lock:
            return [
                (cid, copy.deepcopy(doc))
                for cid, doc in self._data["Chats"].items()
                if user_id in doc.get("participants", [])
            ]

    def add_message(self, chat_id: str, data: Dict[str, Any]) -> str:
        message_id = _new_id()
        with self._lock:
            self._data["Messages"].setdefault(chat_id, {})[message_id] = copy.deepcopy(data)
            self._save()
        return message_id

    def list_messages(self, chat_id: str) -> List[Tuple[str, Dict[str, Any]]]:
        with self._lock:
            messages = self._data["Messages"].get(chat_id, {})
            ordered = sorted(messages.items(), key=lambda item: _ts_sort_key(item[1], "timestamp"))
            return [(mid, copy.deepcopy(doc)) for mid, doc in ordered]

    def delete_chat(self, chat_id: str) -> int:
        """Delete a chat and its messages. Returns the number of messages removed."""
        with self._lock:
            removed = len(self._data["Messages"].pop(chat_id, {}))
            self._data["Chats"].pop(chat_id, None)
            self._save()
            return removed
