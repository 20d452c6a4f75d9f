import logging
import time

import redis
from flask import Blueprint, Flask, current_app, jsonify, request

from .cache import RegionCache
from .config import get_settings
from .data_service import DataService, parse_item_id, validate_category
from .db import MeasurementRepository, SampleItemRepository, close_db, get_db, init_db
from .errors import BackingStoreUnavailable, InvalidArgument, MeasuredCallFailed
from .performance import MeasurementHarness, PerformanceService

logger = logging.getLogger(__name__)

MODES = {"with-cache": True, "without-cache": False}
DEFAULT_API = "getAllData"

api = Blueprint("api", __name__)


def _state():
    return current_app.extensions["cacheperf"]


def _region_cache():
    return RegionCache(_state()["redis"])


def _data_service():
    settings = _state()["settings"]
    return DataService(
        SampleItemRepository(get_db()),
        _region_cache(),
        delay_range_ms=(settings.db_delay_min_ms, settings.db_delay_max_ms),
        sleep=_state()["sleep"],
    )


def _performance_service():
    return PerformanceService(MeasurementRepository(get_db()))


def _harness():
    settings = _state()["settings"]
    return MeasurementHarness(
        _performance_service(),
        detection=settings.cache_hit_detection,
        threshold_ms=settings.cache_hit_threshold_ms,
    )


def parse_mode(mode):
    if mode not in MODES:
        raise InvalidArgument(f"Invalid mode {mode!r}. Choose from: {sorted(MODES)}")
    return MODES[mode]


def _serialize(value):
    if value is None:
        return None
    if isinstance(value, list):
        return [item.to_dict() for item in value]
    return value.to_dict()


def _resolve_lookup(args):
    """Pick the facade call for a query string: (api name, bound method, argument)."""
    category = args.get("category")
    raw_id = args.get("id")
    if category is not None and raw_id is not None:
        raise InvalidArgument("Pass either 'category' or 'id', not both")

    service = _data_service()
    if category is not None:
        return "getDataByCategory", service.get_by_category, validate_category(category)
    if raw_id is not None:
        return "getDataById", service.get_by_id, parse_item_id(raw_id)
    return "getAllData", service.get_all, None


def _lookup(cached, args):
    _, method, argument = _resolve_lookup(args)
    if argument is None:
        result = method(cached)
    else:
        result = method(argument, cached)
    return jsonify(_serialize(result.value))


def _measured(cached, args):
    api_name, method, argument = _resolve_lookup(args)
    call_args = (cached,) if argument is None else (argument, cached)
    logger.info(f"Measured call {api_name} (cache={cached})")
    response = _harness().measure(api_name, cached, method, *call_args)
    response["data"] = _serialize(response["data"])
    return jsonify(response)


@api.route('/api/data', methods=['GET'])
def get_data():
    return _lookup(parse_mode(request.args.get('mode')), request.args)


@api.route('/api/data/all/<mode>', methods=['GET'])
def get_all_data(mode):
    return _lookup(parse_mode(mode), {})


@api.route('/api/data/category/<category>/<mode>', methods=['GET'])
def get_data_by_category(category, mode):
    return _lookup(parse_mode(mode), {"category": category})


@api.route('/api/data/<item_id>/<mode>', methods=['GET'])
def get_data_by_id(item_id, mode):
    return _lookup(parse_mode(mode), {"id": item_id})


@api.route('/api/performance/data', methods=['GET'])
def get_performance_data():
    return _measured(parse_mode(request.args.get('mode')), request.args)


@api.route('/api/performance/data/<mode>', methods=['GET'])
def get_performance_data_by_mode(mode):
    return _measured(parse_mode(mode), {})


@api.route('/api/performance/statistics', methods=['GET'])
def get_performance_statistics():
    api_name = request.args.get('api', DEFAULT_API).strip()
    if not api_name:
        raise InvalidArgument("'api' must not be empty")
    return jsonify(_performance_service().get_performance_statistics(api_name))


@api.route('/api/performance/metrics/recent', methods=['GET'])
def get_recent_metrics():
    api_name = request.args.get('api', DEFAULT_API).strip()
    try:
        limit = int(request.args.get('limit', 10))
    except ValueError:
        raise InvalidArgument("'limit' must be an integer") from None
    if not 1 <= limit <= 1000:
        raise InvalidArgument("'limit' must be between 1 and 1000")
    metrics = _performance_service().get_recent_metrics(api_name, limit)
    return jsonify([m.to_dict() for m in metrics])


@api.route('/api/performance/cache/clear', methods=['POST'])
def clear_cache():
    logger.info("Clearing all cache regions via API call.")
    cleared = _region_cache().clear_all()
    return jsonify({'message': 'Cache cleared successfully', 'regions': cleared})


@api.route('/')
def index():
    return """
    <html>
        <head>
            <title>Cache Performance Demo</title>
            <style>
                body { font-family: sans-serif; max-width: 900px; margin: 2em auto; }
                code { background: #eee; padding: 1px 4px; }
                .get, .method { font-weight: bold; }
                .method { color: #a33; }
            </style>
        </head>
        <body>
            <h1>Cache Performance Demo</h1>
            <p>Compares response times of sample data lookups served from Redis against lookups served from SQLite.</p>

            <h2>Available Endpoints:</h2>
            <ul>
                <li><span class="get">GET</span> <code>/api/data?mode={mode}[&amp;category=..|&amp;id=..]</code> - Look up sample data</li>
                <li><span class="get">GET</span> <code>/api/performance/data?mode={mode}[&amp;category=..|&amp;id=..]</code> - Measured lookup</li>
                <li><span class="get">GET</span> <code>/api/performance/statistics?api={name}</code> - Cached vs uncached statistics</li>
                <li><span class="get">GET</span> <code>/api/performance/metrics/recent?api={name}&amp;limit={n}</code> - Latest cached measurements</li>
                <li><span class="method">POST</span> <code>/api/performance/cache/clear</code> - Clear every cache region</li>
            </ul>

            <h2>Modes:</h2>
            <ul>
                <li><code>with-cache</code></li>
                <li><code>without-cache</code></li>
            </ul>
        </body>
    </html>
    """


def handle_invalid_argument(e):
    logger.warning(f"Rejected request to {request.path}: {e}")
    return jsonify({'error': str(e)}), 400


def handle_measured_call_failed(e):
    if isinstance(e.error, InvalidArgument):
        return handle_invalid_argument(e.error)
    logger.error(f"Error in {e.api_name} (cache={e.cache_enabled})", exc_info=e.error)
    return jsonify({
        'error': str(e.error),
        'responseTimeMs': e.response_time_ms,
        'cacheEnabled': e.cache_enabled,
    }), 500


def handle_backing_store_unavailable(e):
    logger.error(f"Backing store unavailable while serving {request.path}: {e}", exc_info=True)
    return jsonify({'error': str(e)}), 500


def create_app(settings=None, redis_client=None, sleep=time.sleep):
    """Build the Flask app. Collaborators can be passed in; otherwise they come from settings."""
    settings = settings or get_settings()

    if redis_client is None:
        redis_client = redis.Redis(
            host=settings.redis_host, port=settings.redis_port, db=settings.redis_db,
            decode_responses=True,
        )
        try:
            redis_client.ping()
            logger.info("Successfully connected to Redis.")
        except redis.exceptions.ConnectionError as e:
            logger.error(f"Could not connect to Redis: {e}")

    init_db(settings.database_path, seed=settings.seed_sample_data)

    app = Flask(__name__)
    app.config['DATABASE'] = settings.database_path
    app.extensions['cacheperf'] = {
        'settings': settings,
        'redis': redis_client,
        'sleep': sleep,
    }

    app.register_blueprint(api)
    app.register_error_handler(InvalidArgument, handle_invalid_argument)
    app.register_error_handler(MeasuredCallFailed, handle_measured_call_failed)
    app.register_error_handler(BackingStoreUnavailable, handle_backing_store_unavailable)
    app.teardown_appcontext(close_db)

    return app
