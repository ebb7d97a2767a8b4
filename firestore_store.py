# firestore_store.py
import logging
import os
from typing import Any, Callable, Dict, List, Optional, Tuple

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core import exceptions as google_exceptions

from errors import TransientConflict
from models import timestamp_or_epoch

logger = logging.getLogger(__name__)


# ---------------- Firebase Admin ---------------- #
def init_firebase(credentials_path: str = "firebase-credentials.json"):
    """Return a Firestore client, or None when Firebase cannot be initialised.

    Reuses an already-initialised default app (e.g. one set up by a test
    harness or another module) before trying the credentials file.
    """
    try:
        try:
            firebase_admin.get_app()
            logger.info("Firebase Admin SDK already initialized")
        except ValueError:
            if not os.path.exists(credentials_path):
                logger.warning("%s not found; Firestore is unavailable", credentials_path)
                return None
            cred = credentials.Certificate(credentials_path)
            firebase_admin.initialize_app(cred)
            logger.info("Firebase Admin SDK initialized successfully")
        return firestore.client()
    except Exception as e:
        logger.error("Firestore initialization failed: %s", e)
        return None


def _snapshots(snaps) -> List[Tuple[str, Dict[str, Any]]]:
    return [(snap.id, snap.to_dict() or {}) for snap in snaps]


def _by_created_at(snaps) -> List[Tuple[str, Dict[str, Any]]]:
    # unordered query: order_by() excludes documents missing the field
    return sorted(_snapshots(snaps), key=lambda item: timestamp_or_epoch(item[1].get("createdAt")))


class _FirestoreTransaction:
    """Adapter giving transaction bodies the same API the local store offers."""

    def __init__(self, store: "FirestoreStore", txn):
        self._store = store
        self._txn = txn

    def _read(self, ref) -> Optional[Dict[str, Any]]:
        snap = ref.get(transaction=self._txn)
        return (snap.to_dict() or {}) if snap.exists else None

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self._read(self._store.user_ref(user_id))

    def get_habit(self, user_id: str, habit_id: str) -> Optional[Dict[str, Any]]:
        return self._read(self._store.habits_ref(user_id).document(habit_id))

    def list_habits(self, user_id: str) -> List[Tuple[str, Dict[str, Any]]]:
        return _by_created_at(self._store.habits_ref(user_id).get(transaction=self._txn))

    def get_shop_item(self, item_id: str) -> Optional[Dict[str, Any]]:
        return self._read(self._store.db.collection("ShopItems").document(item_id))

    def update_user(self, user_id: str, patch: Dict[str, Any]):
        self._txn.update(self._store.user_ref(user_id), patch)

    def update_habit(self, user_id: str, habit_id: str, patch: Dict[str, Any]):
        self._txn.update(self._store.habits_ref(user_id).document(habit_id), patch)

    def create_chat(self, participants: List[str]) -> str:
        chat_ref = self._store.db.collection("Chats").document()
        self._txn.set(chat_ref, {"participants": list(participants)})
        return chat_ref.id


class FirestoreStore:
    """Document store over the Firestore collections the mobile client uses."""

    def __init__(self, db, max_attempts: int = 5):
        self.db = db
        self.max_attempts = max_attempts

    def user_ref(self, user_id: str):
        return self.db.collection("Users").document(user_id)

    def habits_ref(self, user_id: str):
        return self.user_ref(user_id).collection("Habits")

    # ---------------- Transactions ---------------- #
    def run_transaction(self, fn: Callable[[Any], Any]):
        """Run fn(txn) in a Firestore transaction with optimistic retry."""
        transaction = self.db.transaction(max_attempts=self.max_attempts)

        @firestore.transactional
        def _run(txn):
            return fn(_FirestoreTransaction(self, txn))

        try:
            return _run(transaction)
        except google_exceptions.Aborted as e:
            raise TransientConflict(str(e)) from e
        except ValueError as e:
            # google-cloud-firestore reports retry exhaustion as a ValueError
            if "attempts" in str(e):
                raise TransientConflict(str(e)) from e
            raise

    # ---------------- Users ---------------- #
    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        snap = self.user_ref(user_id).get()
        return (snap.to_dict() or {}) if snap.exists else None

    def list_users(self) -> List[Tuple[str, Dict[str, Any]]]:
        return _snapshots(self.db.collection("Users").stream())

    def find_user_by_username(self, username: str) -> Optional[Tuple[str, Dict[str, Any]]]:
        results = self.db.collection("Users").where("username", "==", username).limit(1).get()
        if not results:
            return None
        return results[0].id, results[0].to_dict() or {}

    def create_user(self, user_id: str, data: Dict[str, Any]):
        self.user_ref(user_id).set(data)

    def update_user(self, user_id: str, patch: Dict[str, Any]):
        self.user_ref(user_id).update(patch)

    # ---------------- Habits ---------------- #
    def get_habit(self, user_id: str, habit_id: str) -> Optional[Dict[str, Any]]:
        snap = self.habits_ref(user_id).document(habit_id).get()
        return (snap.to_dict() or {}) if snap.exists else None

    def list_habits(self, user_id: str) -> List[Tuple[str, Dict[str, Any]]]:
        return _by_created_at(self.habits_ref(user_id).stream())

    def add_habit(self, user_id: str, data: Dict[str, Any]) -> str:
        doc = self.habits_ref(user_id).document()
        doc.set(data)
        return doc.id

    def update_habit(self, user_id: str, habit_id: str, patch: Dict[str, Any]):
        self.habits_ref(user_id).document(habit_id).update(patch)

    def delete_habit(self, user_id: str, habit_id: str):
        self.habits_ref(user_id).document(habit_id).delete()

    # ---------------- Badges & shop ---------------- #
    def list_badges(self) -> Dict[str, Dict[str, Any]]:
        return dict(_snapshots(self.db.collection("Badges").stream()))

    def set_badge(self, badge_id: str, data: Dict[str, Any]):
        self.db.collection("Badges").document(badge_id).set(data)

    def list_shop_items(self) -> List[Tuple[str, Dict[str, Any]]]:
        return _snapshots(self.db.collection("ShopItems").stream())

    def get_shop_item(self, item_id: str) -> Optional[Dict[str, Any]]:
        snap = self.db.collection("ShopItems").document(item_id).get()
        return (snap.to_dict() or {}) if snap.exists else None

    def set_shop_item(self, item_id: str, data: Dict[str, Any]):
        self.db.collection("ShopItems").document(item_id).set(data)

    # ---------------- Chats ---------------- #
    def get_chat(self, chat_id: str) -> Optional[Dict[str, Any]]:
        snap = self.db.collection("Chats").document(chat_id).get()
        return (snap.to_dict() or {}) if snap.exists else None

    def find_chats_with(self, user_id: str) -> List[Tuple[str, Dict[str, Any]]]:
        query = self.db.collection("Chats").where("participants", "array_contains", user_id)
        return _snapshots(query.stream())

    def add_message(self, chat_id: str, data: Dict[str, Any]) -> str:
        doc = self.db.collection("Chats").document(chat_id).collection("Messages").document()
        doc.set(data)
        return doc.id

    def list_messages(self, chat_id: str) -> List[Tuple[str, Dict[str, Any]]]:
        messages = self.db.collection("Chats").document(chat_id).collection("Messages")
        return _snapshots(messages.order_by("timestamp").stream())

    def delete_chat(self, chat_id: str) -> int:
        """Delete a chat and its messages in one batch. Returns the number of messages removed."""
        chat_ref = self.db.collection("Chats").document(chat_id)
        batch = self.db.batch()
        removed = 0
        for msg in chat_ref.collection("Messages").stream():
            batch.delete(msg.reference)
            removed += 1
        batch.delete(chat_ref)
        batch.commit()
        return removed
