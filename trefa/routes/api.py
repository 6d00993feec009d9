# trefa/routes/api.py
from flask import Blueprint, current_app, jsonify, request, session
from sqlalchemy.exc import SQLAlchemyError

from trefa.services.filters import VehicleFilters
from trefa.services.vehicles import remember_viewed

bp = Blueprint("api", __name__)

# per-visitor list, kept in the signed session cookie
RECENTLY_VIEWED_SESSION_KEY = "recently_viewed"


def _service():
    return current_app.extensions["vehicle_service"]


def _to_int(s, default=None):
    try:
        return int(s)
    except (TypeError, ValueError):
        return default


@bp.get("/health")
def health():
    return jsonify({"status": "ok"})


@bp.get("/vehicles")
def list_vehicles():
    filters = VehicleFilters.from_args(request.args)
    page = max(_to_int(request.args.get("page"), 1), 1)
    try:
        result = _service().get_all_vehicles(filters, page)
    except SQLAlchemyError:
        return jsonify({"error": "Inventory temporarily unavailable"}), 503
    return jsonify({**result, "page": page})


@bp.get("/vehicles/slugs")
def vehicle_slugs():
    return jsonify(_service().get_all_vehicle_slugs())


@bp.get("/vehicles/<slug>")
def vehicle_detail(slug: str):
    vehicle = _service().get_vehicle_by_slug(slug)
    if vehicle is None:
        return jsonify({"error": "Vehicle not found"}), 404
    session[RECENTLY_VIEWED_SESSION_KEY] = remember_viewed(
        session.get(RECENTLY_VIEWED_SESSION_KEY), vehicle["id"]
    )
    return jsonify(vehicle)


@bp.get("/filter-options")
def filter_options():
    return jsonify(_service().get_filter_options())


@bp.get("/recently-viewed")
def recently_viewed():
    exclude = _to_int(request.args.get("exclude"))
    ids = session.get(RECENTLY_VIEWED_SESSION_KEY)
    return jsonify(_service().get_recently_viewed(ids, exclude_id=exclude))


@bp.route("/<path:_unknown>", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
def api_not_found(_unknown):
    return jsonify({"error": "Not found"}), 404
