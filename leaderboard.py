# leaderboard.py
from typing import Any, Dict, List

from errors import InvalidRequest, NotFound

LEADERBOARD_STATS = ("longestCurrentStreak", "longestObtainedStreak", "totalCurrencyEarned")


def leaderboard(store, user_id: str, stat: str = "longestCurrentStreak") -> List[Dict[str, Any]]:
    """Rank the user and their friends by one stat, highest first."""
    if stat not in LEADERBOARD_STATS:
        raise InvalidRequest(f"Unknown leaderboard stat '{stat}'")
    doc = store.get_user(user_id)
    if doc is None:
        raise NotFound("User", user_id)

    entries = [(user_id, doc)]
    for friend_id in doc.get("friends") or []:
        friend = store.get_user(friend_id)
        if friend is not None:
            entries.append((friend_id, friend))

    entries.sort(key=lambda entry: entry[1].get(stat) or 0, reverse=True)
    return [
        {
            "rank": position,
            "uid": uid,
            "username": other.get("username", ""),
            "value": other.get(stat) or 0,
            "isCurrentUser": uid == user_id,
        }
        for position, (uid, other) in enumerate(entries, start=1)
    ]
