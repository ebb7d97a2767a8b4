# friends.py
"""Friend requests, friendships and the chats that come with them.

A pair of users is either unrelated, has one pending request (outgoing on the
requester, incoming on the recipient), or are friends on both sides. Every
transition between those states happens in a single store transaction.
"""
import logging
from typing import Any, Dict, List, Optional

from day_boundary import utc_now
from errors import InvalidRequest, NotFound

logger = logging.getLogger(__name__)


def _without(values: List[str], item: str) -> List[str]:
    return [v for v in values if v != item]


def _with(values: List[str], item: str) -> List[str]:
    return values if item in values else values + [item]


class FriendService:
    def __init__(self, store):
        self.store = store

    def send_request(self, requester_id: str, recipient_username: str) -> str:
        """Send a friend request by username. Returns the recipient's uid."""
        found = self.store.find_user_by_username((recipient_username or "").strip())
        if found is None:
            raise NotFound("User", recipient_username)
        recipient_id = found[0]
        if recipient_id == requester_id:
            raise InvalidRequest("You cannot send a friend request to yourself.")

        def _send(txn):
            requester = txn.get_user(requester_id)
            recipient = txn.get_user(recipient_id)
            if requester is None:
                raise NotFound("User", requester_id)
            if recipient is None:
                raise NotFound("User", recipient_id)

            outgoing = requester.get("outgoingRequests") or []
            if recipient_id in outgoing:
                raise InvalidRequest("Outgoing friend request already sent.")
            if recipient_id in (requester.get("friends") or []):
                raise InvalidRequest("User already added as a friend.")
            if recipient_id in (requester.get("incomingRequests") or []):
                raise InvalidRequest("User has already sent you a friend request.")

            txn.update_user(requester_id, {"outgoingRequests": _with(outgoing, recipient_id)})
            txn.update_user(recipient_id, {
                "incomingRequests": _with(recipient.get("incomingRequests") or [], requester_id),
            })

        self.store.run_transaction(_send)
        logger.info("[send_request] %s -> %s", requester_id, recipient_id)
        return recipient_id

    def accept_request(self, requester_id: str, recipient_id: str) -> str:
        """Turn a pending request into a friendship and open a chat. Returns the chat id."""

        def _accept(txn):
            requester = txn.get_user(requester_id)
            recipient = txn.get_user(recipient_id)
            if requester is None or recipient is None:
                raise NotFound("User", requester_id if requester is None else recipient_id)
            if requester_id not in (recipient.get("incomingRequests") or []):
                raise InvalidRequest("No pending friend request from this user.")

            txn.update_user(requester_id, {
                "outgoingRequests": _without(requester.get("outgoingRequests") or [], recipient_id),
                "friends": _with(requester.get("friends") or [], recipient_id),
            })
            txn.update_user(recipient_id, {
                "incomingRequests": _without(recipient.get("incomingRequests") or [], requester_id),
                "friends": _with(recipient.get("friends") or [], requester_id),
            })
            return txn.create_chat([requester_id, recipient_id])

        chat_id = self.store.run_transaction(_accept)
        logger.info("[accept_request] %s <-> %s, chat %s", requester_id, recipient_id, chat_id)
        return chat_id

    def reject_request(self, requester_id: str, recipient_id: str):
        def _reject(txn):
            requester = txn.get_user(requester_id)
            recipient = txn.get_user(recipient_id)
            if requester is None or recipient is None:
                raise NotFound("User", requester_id if requester is None else recipient_id)
            txn.update_user(requester_id, {
                "outgoingRequests": _without(requester.get("outgoingRequests") or [], recipient_id),
            })
            txn.update_user(recipient_id, {
                "incomingRequests": _without(recipient.get("incomingRequests") or [], requester_id),
            })

        self.store.run_transaction(_reject)
        logger.info("[reject_request] %s -> %s rejected", requester_id, recipient_id)

    def remove_friend(self, initiator_id: str, friend_id: str) -> int:
        """End a friendship and delete the pair's chats. Returns how many chats were deleted."""

        def _remove(txn):
            initiator = txn.get_user(initiator_id)
            friend = txn.get_user(friend_id)
            if initiator is None or friend is None:
                raise NotFound("User", initiator_id if initiator is None else friend_id)
            txn.update_user(initiator_id, {"friends": _without(initiator.get("friends") or [], friend_id)})
            txn.update_user(friend_id, {"friends": _without(friend.get("friends") or [], initiator_id)})

        self.store.run_transaction(_remove)

        deleted = 0
        for chat_id, chat in self.store.find_chats_with(initiator_id):
            if friend_id in chat.get("participants", []):
                self.store.delete_chat(chat_id)
                deleted += 1
        logger.info("[remove_friend] %s x %s, %d chats deleted", initiator_id, friend_id, deleted)
        return deleted

    def overview(self, user_id: str) -> Dict[str, Any]:
        """Friends and pending requests with each user's public stats."""
        doc = self.store.get_user(user_id)
        if doc is None:
            raise NotFound("User", user_id)

        def _card(uid: str) -> Optional[Dict[str, Any]]:
            other = self.store.get_user(uid)
            if other is None:
                return None
            return {
                "uid": uid,
                "username": other.get("username", ""),
                "longestCurrentStreak": other.get("longestCurrentStreak", 0),
                "longestObtainedStreak": other.get("longestObtainedStreak", 0),
                "totalCurrencyEarned": other.get("totalCurrencyEarned", 0),
            }

        def _cards(uids: List[str]) -> List[Dict[str, Any]]:
            return [card for card in map(_card, uids) if card is not None]

        return {
            "friends": _cards(doc.get("friends") or []),
            "incomingRequests": _cards(doc.get("incomingRequests") or []),
            "outgoingRequests": _cards(doc.get("outgoingRequests") or []),
        }


class ChatService:
    def __init__(self, store, clock=utc_now):
        self.store = store
        self.clock = clock

    def _chat_for(self, chat_id: str, user_id: str) -> Dict[str, Any]:
        chat = self.store.get_chat(chat_id)
        if chat is None:
            raise NotFound("Chat", chat_id)
        if user_id not in chat.get("participants", []):
            raise InvalidRequest("You are not part of this chat.")
        return chat

    def send_message(self, chat_id: str, sender_id: str, text: str) -> str:
        text = (text or "").strip()
        if not text:
            raise InvalidRequest("Message cannot be empty.")
        self._chat_for(chat_id, sender_id)
        return self.store.add_message(chat_id, {
            "text": text,
            "senderID": sender_id,
            "timestamp": self.clock(),
        })

    def list_messages(self, chat_id: str, user_id: str) -> List[Dict[str, Any]]:
        self._chat_for(chat_id, user_id)
        messages = []
        for message_id, doc in self.store.list_messages(chat_id):
            doc["id"] = message_id
            messages.append(doc)
        return messages
