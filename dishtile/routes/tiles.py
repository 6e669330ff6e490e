# dishtile/routes/tiles.py

from flask import Blueprint, current_app, jsonify, make_response, request

from ..errors import DecodeError, InvalidRequestError, NotFoundError
from ..services.codec import REGULAR, validate_fidelity
from ..services.geometry import validate_tile_index
from ..services.metrics import METRICS
from ..services.tile_service import SOURCE_STORE

tiles_bp = Blueprint("tiles", __name__)


def _parse_dish_id(raw):
    try:
        dish_id = int(str(raw).strip())
    except (TypeError, ValueError):
        raise InvalidRequestError("invalid dishId: %r" % (raw,))
    if dish_id <= 0:
        raise InvalidRequestError("invalid dishId: %r" % (raw,))
    return dish_id


@tiles_bp.get("/api/dish-tiles")
def dish_tile():
    dish_id_raw = request.args.get("dishId")
    tile_index_raw = request.args.get("tileIndex")
    if not dish_id_raw or tile_index_raw is None or tile_index_raw == "":
        METRICS.increment("errors")
        return jsonify({"error": "Missing dishId or tileIndex"}), 400

    try:
        dish_id = _parse_dish_id(dish_id_raw)
        tile_index = validate_tile_index(tile_index_raw)
        fidelity = validate_fidelity(request.args.get("fidelity", REGULAR))
        result = current_app.services.tiles.fetch_tile(dish_id, tile_index, fidelity)
    except InvalidRequestError as e:
        METRICS.increment("errors")
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        current_app.logger.warning("dish-tiles: %s", e)
        METRICS.increment("errors_404")
        return jsonify({"error": str(e)}), 404
    except DecodeError as e:
        current_app.logger.error("dish-tiles: decode failure for dish %s tile %s: %s", dish_id_raw, tile_index_raw, e)
        METRICS.increment("errors")
        return jsonify({"error": "Could not process image"}), 500
    except Exception as e:
        current_app.logger.exception("dish-tiles: %s", e)
        METRICS.increment("errors")
        return jsonify({"error": "Internal server error"}), 500

    http_cache = current_app.http_cache
    etag = http_cache.generate_etag(result.data)
    if http_cache.check_not_modified(request.headers.get("If-None-Match"), etag):
        resp = make_response("", 304)
    else:
        resp = make_response(result.data)
        resp.headers["Content-Type"] = "image/jpeg"
    resp.headers["ETag"] = etag
    resp.headers["Cache-Control"] = http_cache.tile_cache_control(result.source == SOURCE_STORE)
    resp.headers["X-Tile-Source"] = result.source
    METRICS.increment("api_tiles_%s" % result.source)
    return resp
