# backend/app.py
import logging
import os
from datetime import datetime
from urllib.parse import quote

from flask import Flask, Response, jsonify, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from tabilog import expenses as expense_ops
from tabilog import itinerary as itinerary_ops
from tabilog.errors import ItineraryError, PlanNotFound
from tabilog.exporter import export_csv, export_filename
from tabilog.location import location_service
from tabilog.models import Day, Expense, days_to_json
from tabilog.storage import plan_store
from tabilog.sync import itinerary_sync
from tabilog.weather import weather_service

app = Flask(__name__)
CORS(app, resources={r"/api/*": {"origins": "*", "supports_credentials": True}})

app.config['SECRET_KEY'] = os.getenv('SECRET_KEY', 'production-secret-key-change-in-production')
app.config['JSON_SORT_KEYS'] = False
app.json.ensure_ascii = False

limiter = Limiter(
    app=app,
    key_func=get_remote_address,
    default_limits=["3000 per day", "500 per hour"],
    storage_uri="memory://"
)

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)


def itinerary_response(plan_id, days, **extra):
    body = {
        'success': True,
        'plan_id': plan_id,
        'itinerary': days_to_json(days),
        'timestamp': datetime.utcnow().isoformat()
    }
    body.update(extra)
    return jsonify(body), 200


def expenses_response(plan_id, expenses):
    return jsonify({
        'success': True,
        'plan_id': plan_id,
        'expenses': [e.to_dict() for e in expenses],
        'by_date': [
            {'date': day, 'expenses': [e.to_dict() for e in items]}
            for day, items in expense_ops.group_by_date(expenses).items()
        ],
        'totals': expense_ops.totals(expenses),
        'timestamp': datetime.utcnow().isoformat()
    }), 200


@app.route('/', methods=['GET'])
def home():
    return jsonify({
        'service': 'Tabilog API',
        'version': '1.0.0',
        'status': 'operational',
        'environment': os.getenv('FLASK_ENV', 'production'),
        'storage': plan_store.backend
    }), 200


@app.route('/health', methods=['GET'])
def health_check():
    return jsonify({
        'status': 'healthy',
        'service': 'Tabilog API',
        'timestamp': datetime.utcnow().isoformat(),
        'storage': plan_store.backend
    }), 200


# Plans

@app.route('/api/plans', methods=['GET'])
def list_plans():
    plans = plan_store.ensure_initialized()
    return jsonify({
        'success': True,
        'plans': [p.to_dict() for p in plans]
    }), 200


@app.route('/api/plans', methods=['POST'])
def create_plan():
    data = request.get_json() or {}
    title = (data.get('title') or '').strip()
    start_date = data.get('startDate')

    if not title or not start_date:
        return jsonify({
            'success': False,
            'error': 'Title and start date required',
            'code': 'MISSING_FIELDS'
        }), 400

    plan = plan_store.create_plan(title, start_date)
    return jsonify({'success': True, 'plan': plan.to_dict()}), 201


@app.route('/api/plans/<plan_id>', methods=['PATCH'])
def update_plan(plan_id):
    data = request.get_json() or {}
    current = plan_store.get_plan(plan_id)
    plan = plan_store.update_plan(
        plan_id,
        data.get('title', current.title),
        data.get('subtitle', current.subtitle)
    )
    return jsonify({'success': True, 'plan': plan.to_dict()}), 200


@app.route('/api/plans/<plan_id>', methods=['DELETE'])
def delete_plan(plan_id):
    plan_store.delete_plan(plan_id)
    return jsonify({'success': True, 'plan_id': plan_id}), 200


# Itinerary

@app.route('/api/plans/<plan_id>/itinerary', methods=['GET'])
async def get_itinerary(plan_id):
    days = plan_store.get_itinerary(plan_id)
    days, refreshed = await itinerary_sync.refresh_if_stale(days)
    if refreshed:
        logger.info(f"Plan {plan_id}: replaced reference weather with live forecasts")
        plan_store.save_itinerary(plan_id, days)
    return itinerary_response(plan_id, days, weather_refreshed=refreshed)


@app.route('/api/plans/<plan_id>/days', methods=['POST'])
def add_day(plan_id):
    days = itinerary_ops.add_day(plan_store.get_itinerary(plan_id))
    plan_store.save_itinerary(plan_id, days)
    return itinerary_response(plan_id, days, day_id=days[-1].id)


@app.route('/api/plans/<plan_id>/days/<day_id>', methods=['DELETE'])
def delete_day(plan_id, day_id):
    days = itinerary_ops.delete_day(plan_store.get_itinerary(plan_id), day_id)
    plan_store.save_itinerary(plan_id, days)
    return itinerary_response(plan_id, days)


@app.route('/api/plans/<plan_id>/days/reorder', methods=['POST'])
def reorder_days(plan_id):
    data = request.get_json() or {}
    try:
        from_index = int(data['from'])
        to_index = int(data['to'])
    except (KeyError, TypeError, ValueError):
        return jsonify({
            'success': False,
            'error': 'Integer "from" and "to" indexes required',
            'code': 'INVALID_INDEXES'
        }), 400

    days = itinerary_ops.reorder_days(plan_store.get_itinerary(plan_id), from_index, to_index)
    plan_store.save_itinerary(plan_id, days)
    return itinerary_response(plan_id, days)


@app.route('/api/plans/<plan_id>/start-date', methods=['PUT'])
async def update_start_date(plan_id):
    data = request.get_json() or {}
    start_date = data.get('startDate')
    if not start_date:
        return jsonify({
            'success': False,
            'error': 'Start date required',
            'code': 'MISSING_START_DATE'
        }), 400

    days = itinerary_ops.update_start_date(plan_store.get_itinerary(plan_id), start_date)
    plan_store.save_itinerary(plan_id, days)

    days = await itinerary_sync.refresh_all(days)
    plan_store.save_itinerary(plan_id, days)
    return itinerary_response(plan_id, days)


@app.route('/api/plans/<plan_id>/days/<day_id>', methods=['PUT'])
async def update_day(plan_id, day_id):
    days = plan_store.get_itinerary(plan_id)
    old_day = itinerary_ops.find_day(days, day_id)
    if old_day is None:
        raise ItineraryError(f"Unknown day: {day_id}")

    data = request.get_json() or {}
    data['id'] = day_id
    data.setdefault('date', old_day.date)
    try:
        edited = Day.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        return jsonify({
            'success': False,
            'error': f'Invalid day: {e}',
            'code': 'INVALID_DAY'
        }), 400

    days = itinerary_ops.replace_day(days, edited)
    plan_store.save_itinerary(plan_id, days)

    edited = itinerary_ops.find_day(days, day_id)
    update = await itinerary_sync.update_day(old_day, edited)
    if update.changed:
        latest = itinerary_ops.replace_day(plan_store.get_itinerary(plan_id), update.day)
        plan_store.save_itinerary(plan_id, latest)
        days = latest

    return itinerary_response(plan_id, days, day=update.day.to_dict(), weather_changed=update.changed)


@app.route('/api/plans/<plan_id>/weather/refresh', methods=['POST'])
@limiter.limit("60 per hour")
async def refresh_weather(plan_id):
    days = await itinerary_sync.refresh_all(plan_store.get_itinerary(plan_id))
    plan_store.save_itinerary(plan_id, days)
    return itinerary_response(plan_id, days)


# Expenses

@app.route('/api/plans/<plan_id>/expenses', methods=['GET'])
def get_expenses(plan_id):
    return expenses_response(plan_id, plan_store.get_expenses(plan_id))


@app.route('/api/plans/<plan_id>/expenses', methods=['POST'])
def add_expense(plan_id):
    data = request.get_json() or {}
    if not data.get('description') or data.get('amount') in (None, ''):
        return jsonify({
            'success': False,
            'error': 'Amount and description required',
            'code': 'MISSING_FIELDS'
        }), 400

    try:
        expense = Expense.from_dict({**data, 'id': None})
    except (KeyError, TypeError, ValueError) as e:
        return jsonify({
            'success': False,
            'error': f'Invalid expense: {e}',
            'code': 'INVALID_EXPENSE'
        }), 400

    expenses = expense_ops.add_expense(plan_store.get_expenses(plan_id), expense)
    plan_store.save_expenses(plan_id, expenses)
    return expenses_response(plan_id, expenses)


@app.route('/api/plans/<plan_id>/expenses/<expense_id>', methods=['DELETE'])
def delete_expense(plan_id, expense_id):
    expenses = expense_ops.delete_expense(plan_store.get_expenses(plan_id), expense_id)
    plan_store.save_expenses(plan_id, expenses)
    return expenses_response(plan_id, expenses)


@app.route('/api/plans/<plan_id>/export', methods=['GET'])
def export_plan(plan_id):
    plan = plan_store.get_plan(plan_id)
    content = export_csv(plan_store.get_itinerary(plan_id), plan_store.get_expenses(plan_id))
    filename = export_filename(plan.title)
    return Response(
        content.encode('utf-8'),
        mimetype='text/csv; charset=utf-8',
        headers={'Content-Disposition': f"attachment; filename*=UTF-8''{quote(filename)}"}
    )


# Weather lookups

@app.route('/api/weather', methods=['GET'])
@limiter.limit("300 per hour")
async def get_weather():
    location = request.args.get('location', '').strip()
    date = request.args.get('date', '').strip()
    time_label = request.args.get('time')

    if not location or not date:
        return jsonify({
            'success': False,
            'error': 'Location and date required',
            'code': 'MISSING_PARAMETERS'
        }), 400

    if time_label:
        weather = await weather_service.fetch_activity_weather(location, date, time_label)
    else:
        weather = await weather_service.fetch_weather_for_day(location, date)

    return jsonify({
        'success': True,
        'location': location,
        'date': date,
        'weather': weather.to_dict() if weather else None,
        'timestamp': datetime.utcnow().isoformat()
    }), 200


@app.route('/api/location/search', methods=['GET'])
@limiter.limit("100 per hour")
async def search_locations():
    query = request.args.get('q', '').strip()

    if not query or len(query) < 2:
        return jsonify({
            'success': False,
            'error': 'Query must be at least 2 characters',
            'results': []
        }), 400

    try:
        results = await location_service.search_location(query)
    except Exception as e:
        logger.error(f"Location search error: {e}")
        return jsonify({
            'success': False,
            'error': 'Search service unavailable',
            'code': 'SEARCH_ERROR'
        }), 503

    return jsonify({
        'success': True,
        'query': query,
        'results': results,
        'timestamp': datetime.utcnow().isoformat()
    }), 200


@app.errorhandler(ItineraryError)
def itinerary_error(error):
    return jsonify({
        'success': False,
        'error': str(error),
        'code': 'ITINERARY_ERROR'
    }), 400


@app.errorhandler(PlanNotFound)
def plan_not_found(error):
    return jsonify({
        'success': False,
        'error': f'Plan not found: {error}',
        'code': 'PLAN_NOT_FOUND'
    }), 404


@app.errorhandler(404)
def not_found(error):
    return jsonify({
        'success': False,
        'error': 'Endpoint not found',
        'code': 404
    }), 404


@app.errorhandler(500)
def internal_error(error):
    logger.exception(f"Internal server error: {error}")
    return jsonify({
        'success': False,
        'error': 'Internal server error',
        'code': 500
    }), 500


@app.errorhandler(429)
def ratelimit_handler(e):
    return jsonify({
        'success': False,
        'error': 'Rate limit exceeded',
        'code': 429,
        'retry_after': '60 seconds'
    }), 429


if __name__ == '__main__':
    port = int(os.getenv('PORT', 5000))
    debug = os.getenv('FLASK_ENV') == 'development'

    logger.info("=" * 60)
    logger.info("Tabilog API")
    logger.info(f"Server: Running on port {port}")
    logger.info(f"Environment: {os.getenv('FLASK_ENV', 'production')}")
    logger.info(f"Storage: {plan_store.backend}")
    logger.info("=" * 60)

    app.run(host='0.0.0.0', port=port, debug=debug)
