# tests/test_shop.py
import pytest

from accounts import ensure_user
from badge_catalog import BadgeCatalog, seed_badges
from errors import InsufficientFunds, InvalidRequest, NotFound
from local_storage import LocalDocumentStore
from shop import ShopService


@pytest.fixture
def store():
    store = LocalDocumentStore(None)
    seed_badges(store)
    ensure_user(store, "u1", "alice")
    store.update_user("u1", {"currency": 100, "totalCurrencyEarned": 300})
    store.set_shop_item("bg-blue", {"name": "blue", "type": "backgroundColour", "colourCode": "#0000ff", "cost": 30})
    store.set_shop_item("hat-top", {"name": "tophat", "type": "hat", "cost": 60})
    store.set_shop_item("glasses-round", {"name": "round", "type": "glasses", "cost": 500})
    return store


@pytest.fixture
def shop(store):
    return ShopService(store, BadgeCatalog(store))


def test_list_items_grouped_by_type(shop):
    items = shop.list_items()
    assert set(items) == {"backgroundColour", "hat", "glasses"}
    assert items["hat"][0]["id"] == "hat-top"


def test_purchase_deducts_and_promotes_collector(shop, store):
    result = shop.purchase("u1", "bg-blue")
    assert result["currency"] == 70
    assert result["promotions"] == {"collector": 1}

    doc = store.get_user("u1")
    assert doc["currency"] == 70
    assert doc["totalCurrencyEarned"] == 300
    assert doc["ownedItems"] == ["bg-blue"]
    assert {"badgeId": "collector", "highestTierAchieved": 1} in doc["badges"]


def test_purchase_errors(shop, store):
    with pytest.raises(NotFound):
        shop.purchase("u1", "nope")

    with pytest.raises(InsufficientFunds) as exc:
        shop.purchase("u1", "glasses-round")
    assert exc.value.shortfall == 400
    assert store.get_user("u1")["currency"] == 100

    shop.purchase("u1", "hat-top")
    with pytest.raises(InvalidRequest):
        shop.purchase("u1", "hat-top")


def test_toggle_equip_background_uses_colour_code(shop):
    shop.purchase("u1", "bg-blue")
    assert shop.toggle_equip("u1", "bg-blue")["backgroundColour"] == "#0000ff"
    assert shop.toggle_equip("u1", "bg-blue")["backgroundColour"] == "lightgrey"


def test_toggle_equip_hat(shop, store):
    shop.purchase("u1", "hat-top")
    equipped = shop.toggle_equip("u1", "hat-top")
    assert equipped == {"backgroundColour": "lightgrey", "petColour": "grey", "glasses": "none", "hat": "tophat"}
    assert store.get_user("u1")["equippedItems"]["hat"] == "tophat"
    assert shop.toggle_equip("u1", "hat-top")["hat"] == "none"


def test_cannot_equip_unowned_item(shop):
    with pytest.raises(InvalidRequest):
        shop.toggle_equip("u1", "hat-top")
