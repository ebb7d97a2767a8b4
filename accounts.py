# accounts.py
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from errors import InvalidRequest, NotFound
from models import HAPPINESS_MAX, SEEDED_BADGES, User

logger = logging.getLogger(__name__)

DEFAULT_PET_NAME = "Pal"
DEFAULT_EQUIPPED_ITEMS = {
    "backgroundColour": "lightgrey",
    "petColour": "grey",
    "glasses": "none",
    "hat": "none",
}
EDITABLE_FIELDS = ("username", "petName")
MAX_NAME_LENGTH = 15
FALLBACK_USERNAME = "user"


def _split_display_name(display_name: str) -> Tuple[str, str]:
    parts = (display_name or "").split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def username_from_display_name(display_name: str) -> str:
    """Letters and digits of the display name, cut to the name length limit."""
    cleaned = re.sub(r"[^a-zA-Z0-9]", "", display_name or "")
    return cleaned[:MAX_NAME_LENGTH] or FALLBACK_USERNAME


def unique_username(store, display_name: str) -> str:
    """First free username derived from the display name: AdaLovelace, AdaLovelace1, ..."""
    base = username_from_display_name(display_name)
    candidate = base
    suffix = 0
    while store.find_user_by_username(candidate) is not None:
        suffix += 1
        tail = str(suffix)
        candidate = base[:MAX_NAME_LENGTH - len(tail)] + tail
    return candidate


def new_user_document(display_name: str = "", username: Optional[str] = None) -> Dict[str, Any]:
    """Default document for a user signing in for the first time."""
    first_name, last_name = _split_display_name(display_name)
    return {
        "username": username or username_from_display_name(display_name),
        "firstName": first_name,
        "lastName": last_name,
        "petName": DEFAULT_PET_NAME,
        "currency": 0,
        "totalCurrencyEarned": 0,
        "longestCurrentStreak": 0,
        "longestObtainedStreak": 0,
        "happinessMeter": HAPPINESS_MAX,
        "friends": [],
        "incomingRequests": [],
        "outgoingRequests": [],
        "badges": [{"badgeId": badge_id, "highestTierAchieved": 0} for badge_id in SEEDED_BADGES],
        "ownedItems": [],
        "equippedItems": dict(DEFAULT_EQUIPPED_ITEMS),
    }


def ensure_user(store, user_id: str, display_name: str = "") -> bool:
    """Create the user document on first sign-in. Returns True if it was created."""
    if store.get_user(user_id) is not None:
        return False
    username = unique_username(store, display_name)
    store.create_user(user_id, new_user_document(display_name, username))
    logger.info("[ensure_user] created user document for %s (username=%s)", user_id, username)
    return True


class ProfileManager:
    @staticmethod
    def validate_name(value: str, current: str = "") -> str:
        """Validate a username / pet name and return it stripped."""
        value = (value or "").strip()
        if value == "":
            raise InvalidRequest("Name cannot be blank.")
        if not re.match(r"^[a-zA-Z0-9]+$", value):
            raise InvalidRequest("Name must contain only letters and numbers.")
        if value == current:
            raise InvalidRequest("The new name is the same as the current name.")
        if len(value) > MAX_NAME_LENGTH:
            raise InvalidRequest(f"Name cannot be longer than {MAX_NAME_LENGTH} characters.")
        return value

    @staticmethod
    def update_field(store, user_id: str, field: str, value: str) -> str:
        """Change the username or pet name; usernames must be unique."""
        if field not in EDITABLE_FIELDS:
            raise InvalidRequest(f"'{field}' cannot be changed")
        doc = store.get_user(user_id)
        if doc is None:
            raise NotFound("User", user_id)

        value = ProfileManager.validate_name(value, doc.get(field) or "")
        if field == "username":
            taken = store.find_user_by_username(value)
            if taken is not None and taken[0] != user_id:
                raise InvalidRequest("This username is already in use by someone else.")

        store.update_user(user_id, {field: value})
        logger.info("[update_field] user=%s %s -> %s", user_id, field, value)
        return value


def pet_mood(happiness: float) -> str:
    if happiness <= 33.3:
        return "Sad"
    if happiness <= 66.6:
        return "Neutral"
    return "Happy"


def describe_badges(user: User, catalog) -> List[Dict[str, Any]]:
    """Badge title, tier and the description for the tier reached."""
    described = []
    for record in user.badges:
        badge = catalog.get_badge(record.badge_id)
        if badge is None:
            continue
        tier = badge.tier_info(record.highest_tier_achieved)
        described.append({
            "id": badge.id,
            "title": badge.title,
            "tier": record.highest_tier_achieved,
            "description": tier.tier_description if tier else badge.base_description,
            "imageURL": tier.image_ref if tier else "",
        })
    return described


def get_profile(store, catalog, user_id: str) -> Dict[str, Any]:
    """Read-only profile: counters, pet and badges."""
    doc = store.get_user(user_id)
    if doc is None:
        raise NotFound("User", user_id)
    user = User.from_dict(user_id, doc)
    return {
        "uid": user_id,
        "username": user.username,
        "petName": doc.get("petName", DEFAULT_PET_NAME),
        "petMood": pet_mood(user.happiness_meter),
        "happinessMeter": user.happiness_meter,
        "currency": user.currency,
        "totalCurrencyEarned": user.total_currency_earned,
        "longestCurrentStreak": user.longest_current_streak,
        "longestObtainedStreak": user.longest_obtained_streak,
        "equippedItems": doc.get("equippedItems") or dict(DEFAULT_EQUIPPED_ITEMS),
        "badges": describe_badges(user, catalog),
    }
