import hmac
from functools import wraps

from flask import current_app, jsonify, make_response, request
from flask_login import current_user, login_required
from werkzeug.datastructures import MultiDict

from app import db, limiter
from app.errors import InvalidInput, NotFound, PermissionDenied
from app.forms.predictions import PredictionForm
from app.forms.seasons import CloseSeasonForm
from app.models import Match, MatchStatus, Prediction, Season
from app.routes.api import bp
from app.services import predictions as prediction_service
from app.services.scheduler_service import scheduler_service
from app.services.season_manager import season_manager
from app.services.standings import get_standings, get_user_summary, normalize_scope
from app.services.sync_reconciler import reconcile
from app.utils.timezone_utils import get_utc_time


def add_security_headers(f):
    """Add no-cache headers to API responses carrying user data"""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        response = make_response(f(*args, **kwargs))
        response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
        return response

    return decorated_function


def admin_required(f):
    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if not current_user.is_admin:
            raise PermissionDenied("Admin privileges required")
        return f(*args, **kwargs)

    return decorated_function


def _has_sync_secret():
    secret = current_app.config.get("SYNC_API_SECRET")
    if not secret:
        return False
    return hmac.compare_digest(
        request.headers.get("Authorization", ""), f"Bearer {secret}"
    )


def _json_payload():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidInput("Request body must be a JSON object")
    return data


def _validated_form(form_cls):
    """Build a WTForms form from the JSON body; null values count as absent"""
    payload = _json_payload()
    formdata = MultiDict({k: str(v) for k, v in payload.items() if v is not None})
    form = form_cls(formdata=formdata, meta={"csrf": False})
    if not form.validate():
        messages = [
            f"{name}: {error}" for name, errors in form.errors.items() for error in errors
        ]
        raise InvalidInput("; ".join(messages))
    return form


# Matches


@bp.route("/matches")
def matches():
    """List matches, optionally filtered by status or upcoming only"""
    query = Match.query

    status = request.args.get("status")
    if status:
        status = status.upper()
        if status not in MatchStatus.ALL:
            raise InvalidInput(f"Unknown match status {status!r}")
        query = query.filter(Match.status == status)

    if request.args.get("upcoming", type=int):
        query = query.filter(Match.kickoff_utc > get_utc_time())

    return jsonify([m.to_dict() for m in query.order_by(Match.kickoff_utc).all()])


@bp.route("/matches/<int:match_id>")
def match_detail(match_id):
    match = db.session.get(Match, match_id)
    if match is None:
        raise NotFound(f"Match {match_id} not found")
    return jsonify(match.to_dict(include_predictions_count=True))


# Predictions


@bp.route("/predictions")
@login_required
@add_security_headers
def list_predictions():
    items = prediction_service.list_predictions(
        match_id=request.args.get("match_id", type=int),
        user_id=request.args.get("user_id", type=int),
        season_id=request.args.get("season_id", type=int),
    )
    return jsonify([p.to_dict(include_match=True, include_user=True) for p in items])


@bp.route("/predictions", methods=["POST"])
@login_required
@limiter.limit("60 per minute")
@add_security_headers
def upsert_prediction():
    """Create or update a prediction (upsert on user + match)"""
    form = _validated_form(PredictionForm)

    prediction, created = prediction_service.upsert_prediction(
        current_user,
        form.match_id.data,
        form.home_score.data,
        form.away_score.data,
        form.home_score_halftime.data,
        form.away_score_halftime.data,
        user_id=form.user_id.data,
    )
    return jsonify(prediction.to_dict()), 201 if created else 200


@bp.route("/predictions/<int:prediction_id>", methods=["DELETE"])
@login_required
@add_security_headers
def delete_prediction(prediction_id):
    prediction_service.delete_prediction(current_user, prediction_id)
    return jsonify({"success": True})


@bp.route("/predictions/<int:prediction_id>")
@login_required
def prediction_detail(prediction_id):
    prediction = db.session.get(Prediction, prediction_id)
    if prediction is None:
        raise NotFound(f"Prediction {prediction_id} not found")
    return jsonify(prediction.to_dict(include_match=True, include_user=True))


# Standings


@bp.route("/standings")
def standings():
    """Ordered standings for ?scope=<season_id|all-time> (default: active season)"""
    scope = normalize_scope(request.args.get("scope"))
    return jsonify({"scope": scope, "standings": get_standings(scope)})


@bp.route("/standings/users/<int:user_id>")
def user_standing(user_id):
    scope = normalize_scope(request.args.get("scope"))
    return jsonify({"scope": scope, "standing": get_user_summary(user_id, scope)})


# Seasons


@bp.route("/seasons")
def seasons():
    return jsonify([s.to_dict() for s in season_manager.list_seasons()])


@bp.route("/seasons/current")
def current_season():
    return jsonify(season_manager.current_season().to_dict())


@bp.route("/seasons/<int:season_id>")
def season_detail(season_id):
    return jsonify(season_manager.get_season(season_id).to_dict())


@bp.route("/seasons/close", methods=["POST"])
@admin_required
@add_security_headers
def close_season():
    """Close the active season and open a new one"""
    form = _validated_form(CloseSeasonForm)

    result = season_manager.close_and_open(
        form.new_season_name.data,
        scoring_mode=form.scoring_mode.data or None,
        expected_season_id=form.expected_season_id.data,
    )
    current_app.logger.info(
        f"Season {result.closed_season_id} closed by user {current_user.id}"
    )
    return jsonify(result.to_dict()), 201


# Sync


@bp.route("/sync", methods=["POST"])
@limiter.limit("30 per minute")
def sync():
    """Accept a batch of observed matches from the external feed collaborator"""
    authenticated_admin = current_user.is_authenticated and current_user.is_admin
    if not (_has_sync_secret() or authenticated_admin):
        return jsonify({"error": "Unauthorized", "message": "Sync secret required"}), 401

    observed = _json_payload().get("matches")
    if not isinstance(observed, list):
        raise InvalidInput("'matches' must be a list")

    result = reconcile(observed)
    return jsonify({"success": result.errors == 0, **result.to_dict()})


# Scheduler


@bp.route("/scheduler/status")
@admin_required
def scheduler_status():
    status = scheduler_service.get_status()
    status["pending_rescore"] = Match.query.filter_by(needs_rescore=True).count()
    status["active_season_id"] = getattr(Season.get_current_season(), "id", None)
    return jsonify(status)


@bp.route("/scheduler/run", methods=["POST"])
@admin_required
def scheduler_run():
    success, stats = scheduler_service.force_run()
    if stats.get("last_run"):
        stats["last_run"] = stats["last_run"].isoformat()
    return jsonify({"success": success, "stats": stats})
