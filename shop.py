# shop.py
import logging
from collections import OrderedDict
from typing import Any, Dict, List

from accounts import DEFAULT_EQUIPPED_ITEMS
from errors import InsufficientFunds, InvalidRequest, NotFound
from models import BADGE_COLLECTOR, User
from progression import promote_badges

logger = logging.getLogger(__name__)

ITEM_BACKGROUND = "backgroundColour"


def equip_value(item: Dict[str, Any]) -> str:
    """Value stored in equippedItems for an item: colour code for backgrounds, else the name."""
    if item.get("type") == ITEM_BACKGROUND:
        return item.get("colourCode") or item.get("name", "")
    return item.get("name", "")


class ShopService:
    """Buying and equipping pet cosmetics."""

    def __init__(self, store, catalog):
        self.store = store
        self.catalog = catalog

    def list_items(self) -> Dict[str, List[Dict[str, Any]]]:
        grouped: Dict[str, List[Dict[str, Any]]] = OrderedDict()
        for item_id, doc in sorted(self.store.list_shop_items(), key=lambda item: item[1].get("cost", 0)):
            doc["id"] = item_id
            grouped.setdefault(doc.get("type", "other"), []).append(doc)
        return grouped

    def purchase(self, user_id: str, item_id: str) -> Dict[str, Any]:
        """Buy an item. Returns the new balance and any collector promotion."""

        def _buy(txn):
            user_doc = txn.get_user(user_id)
            item = txn.get_shop_item(item_id)
            if user_doc is None:
                raise NotFound("User", user_id)
            if item is None:
                raise NotFound("Shop item", item_id)

            owned = list(user_doc.get("ownedItems") or [])
            if item_id in owned:
                raise InvalidRequest("You already own this item.")

            user = User.from_dict(user_id, user_doc)
            cost = int(item.get("cost", 0))
            if user.currency < cost:
                raise InsufficientFunds(user.currency, cost)

            owned.append(item_id)
            badges, promotions = promote_badges(user.badges, self.catalog, {BADGE_COLLECTOR: len(owned)})
            txn.update_user(user_id, {
                "currency": user.currency - cost,
                "ownedItems": owned,
                "badges": [b.to_dict() for b in badges],
            })
            return {"currency": user.currency - cost, "ownedItems": owned, "promotions": promotions}

        result = self.store.run_transaction(_buy)
        logger.info("[purchase] user=%s item=%s balance=%d", user_id, item_id, result["currency"])
        return result

    def toggle_equip(self, user_id: str, item_id: str) -> Dict[str, str]:
        """Equip an owned item, or unequip it if it is already on. Returns the new equippedItems."""

        def _toggle(txn):
            user_doc = txn.get_user(user_id)
            item = txn.get_shop_item(item_id)
            if user_doc is None:
                raise NotFound("User", user_id)
            if item is None:
                raise NotFound("Shop item", item_id)
            if item_id not in (user_doc.get("ownedItems") or []):
                raise InvalidRequest("You must buy this item before equipping it.")

            slot = item.get("type")
            if not slot:
                raise InvalidRequest("This item cannot be equipped.")
            equipped = dict(DEFAULT_EQUIPPED_ITEMS)
            equipped.update(user_doc.get("equippedItems") or {})

            value = equip_value(item)
            if equipped.get(slot) == value:
                equipped[slot] = DEFAULT_EQUIPPED_ITEMS.get(slot, "none")
            else:
                equipped[slot] = value
            txn.update_user(user_id, {"equippedItems": equipped})
            return equipped

        equipped = self.store.run_transaction(_toggle)
        logger.info("[toggle_equip] user=%s item=%s -> %s", user_id, item_id, equipped)
        return equipped
