"""
SocketIO Event Handlers for Real-time Updates

Clients connected to the /league namespace receive score, standings and
season events. Broadcast helpers are called by the services after commits.
"""

import logging

from flask import request
from flask_login import current_user
from flask_socketio import emit, join_room, leave_room

from app import db, socketio
from app.models import Match, Season

logger = logging.getLogger(__name__)

NAMESPACE = "/league"

# Track connected clients and their subscriptions
connected_users = {}


@socketio.on("connect", namespace=NAMESPACE)
def on_connect():
    """Handle client connection; send the active season"""
    try:
        user_id = current_user.id if current_user.is_authenticated else None
        client_id = request.sid

        logger.info(f"Client connected to {NAMESPACE}: {client_id} (user: {user_id})")
        connected_users[client_id] = {"user_id": user_id, "subscriptions": set()}

        season = Season.get_current_season()
        if season:
            emit("current_season", season.to_dict())
    except Exception as e:
        logger.error(f"Error in league connect: {e}")


@socketio.on("disconnect", namespace=NAMESPACE)
def on_disconnect():
    client_id = request.sid
    if client_id in connected_users:
        logger.info(
            f"Client disconnected from {NAMESPACE}: {client_id} "
            f"(user: {connected_users[client_id]['user_id']})"
        )
        del connected_users[client_id]


@socketio.on("subscribe_match", namespace=NAMESPACE)
def on_subscribe_match(data):
    """Subscribe to updates for a specific match"""
    try:
        client_id = request.sid
        match_id = data.get("match_id")

        if client_id in connected_users and match_id:
            room_name = f"match_{match_id}"
            if room_name in connected_users[client_id]["subscriptions"]:
                return

            connected_users[client_id]["subscriptions"].add(room_name)
            join_room(room_name)

            match = db.session.get(Match, match_id)
            if match:
                emit("match_update", match.to_dict())
    except Exception as e:
        logger.error(f"Error in subscribe_match: {e}")


@socketio.on("unsubscribe_match", namespace=NAMESPACE)
def on_unsubscribe_match(data):
    client_id = request.sid
    match_id = data.get("match_id")

    if client_id in connected_users and match_id:
        connected_users[client_id]["subscriptions"].discard(f"match_{match_id}")
        leave_room(f"match_{match_id}")


def broadcast_match_scored(match):
    """Tell subscribers a match's predictions were (re)scored"""
    try:
        socketio.emit(
            "match_scored", match.to_dict(), namespace=NAMESPACE, to=f"match_{match.id}"
        )
    except Exception as e:
        logger.error(f"Error broadcasting match {match.id} scored: {e}")


def broadcast_standings_updated(season_id=None):
    """Tell every client that standings must be refetched"""
    try:
        socketio.emit(
            "standings_updated", {"season_id": season_id}, namespace=NAMESPACE
        )
    except Exception as e:
        logger.error(f"Error broadcasting standings update: {e}")


def broadcast_season_closed(result):
    """Announce a season close and the newly opened season"""
    try:
        socketio.emit("season_closed", result.to_dict(), namespace=NAMESPACE)
    except Exception as e:
        logger.error(f"Error broadcasting season close: {e}")
