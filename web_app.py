# web_app.py
import logging
from datetime import datetime

import click
from flask import Flask, jsonify, request, session
from firebase_admin import auth

from accounts import ProfileManager, describe_badges, ensure_user, get_profile
from badge_catalog import BadgeCatalog, seed_badges
from config import settings
from day_boundary import ensure_aware, utc_now
from errors import (
    HabitError,
    InsufficientFunds,
    InvalidRequest,
    NotFound,
    PreconditionFailed,
    TransientConflict,
)
from firestore_store import FirestoreStore, init_firebase
from friends import ChatService, FriendService
from habit_service import HabitService
from leaderboard import leaderboard
from local_storage import LocalDocumentStore
from models import User
from nightly_reset import NightlyResetJob
from shop import ShopService

logger = logging.getLogger(__name__)

# ---------------- Flask ---------------- #
app = Flask(__name__)
app.secret_key = settings.secret_key

app.config.update(
    SESSION_COOKIE_NAME='habit_session',
    SESSION_COOKIE_HTTPONLY=True,
    SESSION_COOKIE_SAMESITE='Lax',
    SESSION_COOKIE_SECURE=False  # set True if you serve over HTTPS
)

# ---------------- Document store ---------------- #
db = init_firebase(settings.firebase_credentials)
if db is not None:
    store = FirestoreStore(db, max_attempts=settings.transaction_attempts)
else:
    logger.warning("Falling back to local document store at %s", settings.local_store_path)
    store = LocalDocumentStore(settings.local_store_path)

catalog = BadgeCatalog(store)

# ---------------- Helpers ---------------- #
_STATUS_BY_ERROR = (
    (NotFound, 404),
    (InvalidRequest, 400),
    (InsufficientFunds, 400),
    (PreconditionFailed, 400),
    (TransientConflict, 409),
)


def current_uid():
    """UID of the signed-in user, or None."""
    return session.get('user_uid')


def _unauthenticated():
    return jsonify({'error': 'Authentication required'}), 401


def _fail(tag, e):
    """Turn an exception from a service into a JSON error response."""
    if isinstance(e, HabitError):
        for error_type, status in _STATUS_BY_ERROR:
            if isinstance(e, error_type):
                logger.info("[%s] %s: %s", tag, type(e).__name__, e)
                return jsonify({'success': False, 'error': str(e)}), status
    logger.exception("[%s] error", tag)
    return jsonify({'success': False, 'error': 'Something went wrong'}), 500


def _ts_to_iso(v):
    """Firestore Timestamp / datetime to an ISO string for JSON."""
    if isinstance(v, datetime):
        return ensure_aware(v).isoformat()
    if hasattr(v, "to_datetime"):
        return ensure_aware(v.to_datetime()).isoformat()
    return v


def _jsonable(doc):
    return {k: _ts_to_iso(v) for k, v in doc.items()}


def _body():
    return request.get_json(silent=True) or request.form.to_dict(flat=True)


# ---------------- Auth ---------------- #
@app.route('/verify-token', methods=['POST'])
def verify_token():
    """
    Called from the client with a Firebase ID token.
    On success: store the uid in session and create the user document if needed.
    """
    data = request.get_json(silent=True) or {}
    id_token = data.get('idToken')
    if not id_token:
        return jsonify({'error': 'No ID token provided'}), 400

    try:
        decoded = auth.verify_id_token(id_token, clock_skew_seconds=10)
    except Exception as e:
        logger.warning("[verify_token] invalid token: %s", e)
        return jsonify({'error': 'Invalid token'}), 401

    user_uid = decoded['uid']
    session['user_uid'] = user_uid
    session['user_email'] = decoded.get('email', '')
    display_name = data.get('displayName') or decoded.get('name') or ''

    try:
        created = ensure_user(store, user_uid, display_name)
    except Exception as e:
        return _fail('verify_token', e)
    logger.info("[verify_token] signed in %s (new=%s)", user_uid, created)
    return jsonify({'success': True, 'created': created}), 200


@app.route('/logout')
def logout():
    session.clear()
    return jsonify({'success': True}), 200


# ---------------- Habits API ---------------- #
@app.route('/api/habits', methods=['GET', 'POST'])
def habits_api():
    user_id = current_uid()
    if not user_id:
        return _unauthenticated()
    service = HabitService(store, catalog)

    # ---------- GET: habits in creation order ---------- #
    if request.method == 'GET':
        try:
            habits = [_jsonable(h) for h in service.list_habits(user_id)]
        except Exception as e:
            return _fail('habits_api GET', e)
        return jsonify({'success': True, 'habits': habits}), 200

    # ---------- POST: create a new habit ---------- #
    data = _body()
    try:
        habit_id = service.create_habit(user_id, data.get('name'))
    except Exception as e:
        return _fail('habits_api POST', e)
    return jsonify({'success': True,
                    'message': 'Habit created successfully!',
                    'habitId': habit_id}), 200


@app.route('/api/habits/<habit_id>', methods=['DELETE'])
def delete_habit(habit_id):
    user_id = current_uid()
    if not user_id:
        return _unauthenticated()
    try:
        HabitService(store, catalog).delete_habit(user_id, habit_id)
    except Exception as e:
        return _fail('delete_habit', e)
    return jsonify({'success': True, 'message': 'Habit deleted'}), 200


# ---------------- Mark Habit Complete API ---------------- #
@app.route('/habit/<habit_id>/complete', methods=['POST'])
def mark_habit_complete(habit_id):
    """Mark a habit as complete for today and pay out the reward"""
    user_id = current_uid()
    if not user_id:
        return _unauthenticated()

    try:
        outcome = HabitService(store, catalog).complete_habit(user_id, habit_id)
    except Exception as e:
        return _fail('mark_habit_complete', e)

    if not outcome.completed:
        return jsonify({'success': True, 'completed': False, 'message': outcome.message}), 200
    return jsonify({
        'success': True,
        'completed': True,
        'message': outcome.message,
        'newStreak': outcome.streak,
        'reward': outcome.reward,
        'currency': outcome.currency,
        'happinessMeter': outcome.happiness,
        'promotions': outcome.promotions,
    }), 200


# ---------------- Profile & settings ---------------- #
@app.route('/api/profile', methods=['GET'])
def profile_api():
    user_id = current_uid()
    if not user_id:
        return _unauthenticated()
    try:
        profile = get_profile(store, catalog, user_id)
    except Exception as e:
        return _fail('profile_api', e)
    return jsonify({'success': True, 'profile': profile}), 200


@app.route('/api/badges', methods=['GET'])
def badges_api():
    user_id = current_uid()
    if not user_id:
        return _unauthenticated()
    try:
        doc = store.get_user(user_id)
        if doc is None:
            raise NotFound("User", user_id)
        badges = describe_badges(User.from_dict(user_id, doc), catalog)
    except Exception as e:
        return _fail('badges_api', e)
    return jsonify({'success': True, 'badges': badges}), 200


@app.route('/api/settings', methods=['PUT'])
def update_settings():
    """Change the username or pet name: {"field": "username"|"petName", "value": "..."}"""
    user_id = current_uid()
    if not user_id:
        return _unauthenticated()
    data = _body()
    try:
        value = ProfileManager.update_field(store, user_id, data.get('field', ''), data.get('value', ''))
    except Exception as e:
        return _fail('update_settings', e)
    return jsonify({'success': True, 'field': data.get('field'), 'value': value}), 200


# ---------------- Friends API ---------------- #
@app.route('/api/friends', methods=['GET'])
def get_friends():
    user_id = current_uid()
    if not user_id:
        return _unauthenticated()
    try:
        overview = FriendService(store).overview(user_id)
    except Exception as e:
        return _fail('get_friends', e)
    return jsonify({'success': True, **overview}), 200


@app.route('/api/friends/add', methods=['POST'])
def add_friend():
    user_id = current_uid()
    if not user_id:
        return _unauthenticated()
    data = _body()
    try:
        recipient = FriendService(store).send_request(user_id, data.get('username', ''))
    except Exception as e:
        return _fail('add_friend', e)
    return jsonify({'success': True, 'message': 'Friend request sent', 'recipientUid': recipient}), 200


@app.route('/api/friends/accept', methods=['POST'])
def accept_friend_request():
    user_id = current_uid()
    if not user_id:
        return _unauthenticated()
    data = _body()
    try:
        chat_id = FriendService(store).accept_request(data.get('requesterUid', ''), user_id)
    except Exception as e:
        return _fail('accept_friend_request', e)
    return jsonify({'success': True, 'message': 'Friend request accepted', 'chatId': chat_id}), 200


@app.route('/api/friends/decline', methods=['POST'])
def decline_friend_request():
    user_id = current_uid()
    if not user_id:
        return _unauthenticated()
    data = _body()
    try:
        FriendService(store).reject_request(data.get('requesterUid', ''), user_id)
    except Exception as e:
        return _fail('decline_friend_request', e)
    return jsonify({'success': True, 'message': 'Friend request declined'}), 200


@app.route('/api/friends/<friend_uid>', methods=['DELETE'])
def remove_friend(friend_uid):
    user_id = current_uid()
    if not user_id:
        return _unauthenticated()
    try:
        deleted = FriendService(store).remove_friend(user_id, friend_uid)
    except Exception as e:
        return _fail('remove_friend', e)
    return jsonify({'success': True, 'message': 'Friend removed', 'chatsDeleted': deleted}), 200


# ---------------- Chats API ---------------- #
@app.route('/api/chats/<chat_id>/messages', methods=['GET', 'POST'])
def chat_messages(chat_id):
    user_id = current_uid()
    if not user_id:
        return _unauthenticated()
    chats = ChatService(store)

    if request.method == 'GET':
        try:
            messages = [_jsonable(m) for m in chats.list_messages(chat_id, user_id)]
        except Exception as e:
            return _fail('chat_messages GET', e)
        return jsonify({'success': True, 'messages': messages}), 200

    data = _body()
    try:
        message_id = chats.send_message(chat_id, user_id, data.get('text', ''))
    except Exception as e:
        return _fail('chat_messages POST', e)
    return jsonify({'success': True, 'messageId': message_id}), 200


# ---------------- Shop API ---------------- #
@app.route('/api/shop', methods=['GET'])
def shop_items():
    if not current_uid():
        return _unauthenticated()
    try:
        items = ShopService(store, catalog).list_items()
    except Exception as e:
        return _fail('shop_items', e)
    return jsonify({'success': True, 'items': items}), 200


@app.route('/api/shop/<item_id>/buy', methods=['POST'])
def buy_item(item_id):
    user_id = current_uid()
    if not user_id:
        return _unauthenticated()
    try:
        result = ShopService(store, catalog).purchase(user_id, item_id)
    except Exception as e:
        return _fail('buy_item', e)
    return jsonify({'success': True, **result}), 200


@app.route('/api/shop/<item_id>/equip', methods=['POST'])
def equip_item(item_id):
    user_id = current_uid()
    if not user_id:
        return _unauthenticated()
    try:
        equipped = ShopService(store, catalog).toggle_equip(user_id, item_id)
    except Exception as e:
        return _fail('equip_item', e)
    return jsonify({'success': True, 'equippedItems': equipped}), 200


# ---------------- Leaderboard API ---------------- #
@app.route('/api/leaderboard', methods=['GET'])
def leaderboard_api():
    user_id = current_uid()
    if not user_id:
        return _unauthenticated()
    stat = request.args.get('stat', 'longestCurrentStreak')
    try:
        ranking = leaderboard(store, user_id, stat)
    except Exception as e:
        return _fail('leaderboard_api', e)
    return jsonify({'success': True, 'stat': stat, 'ranking': ranking}), 200


# ---------------- CLI ---------------- #
@app.cli.command('nightly-reset')
@click.option('--as-of', 'as_of', default=None,
              help='ISO timestamp the reset snapshots at (default: the most recent cutoff).')
def nightly_reset_command(as_of):
    """Run the nightly habit reset once."""
    boundary = settings.day_boundary
    if as_of:
        snapshot = ensure_aware(datetime.fromisoformat(as_of))
    else:
        # snapshot at the last cutoff, as the scheduler does
        snapshot = boundary.last_cutoff(utc_now())
    job = NightlyResetJob(store, boundary, max_workers=settings.reset_workers)
    job.run(as_of=snapshot)
    summary = job.last_summary
    click.echo(f"{summary.day}: {len(summary.reset)} reset, "
               f"{len(summary.skipped)} skipped, {len(summary.failed)} failed")


@app.cli.command('seed-badges')
def seed_badges_command():
    """Write the default badge catalog for any badge not yet stored."""
    written = seed_badges(store)
    catalog.refresh()
    click.echo(f"Seeded {written} badges")


# ---------------- Run ---------------- #
if __name__ == '__main__':
    # host/port visible to your curl and browser
    app.run(debug=True, host='127.0.0.1', port=5000)
