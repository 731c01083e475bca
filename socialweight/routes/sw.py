"""
SW routes: score calculation, forced recalculation, weights, growth.

All endpoints require a bearer token. Errors are rendered by the JSON error
handlers registered in create_app().
"""
import logging
from datetime import datetime, timedelta, timezone

from flask import Blueprint, g, jsonify, request

from socialweight.scoring.engine import get_scorer
from socialweight.scoring.weights import WeightConfig, coerce_levels
from socialweight.services.auth import require_caller

logger = logging.getLogger('routes.sw')

bp = Blueprint('sw', __name__)

# Fields an admin may change through PUT /sw/weights
EDITABLE_WEIGHTS = (
    'registration_points',
    'profile_complete_points',
    'growth_total_points_multiplier',
    'follower_points',
    'connection_first_points',
    'connection_repeat_points',
    'post_points',
    'comment_points',
    'reaction_points',
    'invite_points',
    'growth_bonus_percentage',
    'daily_inflation_rate',
    'user_growth_inflation_rate',
    'min_inflation_rate',
    'cache_duration_minutes',
)
RATE_FIELDS = {'growth_bonus_percentage', 'daily_inflation_rate',
               'user_growth_inflation_rate', 'min_inflation_rate'}


def _forbidden(message='Permission denied'):
    return jsonify({'error': message, 'code': 'ACCESS_DENIED'}), 403


def _weights_body(row):
    """{weights, sw_levels} as served by GET/PUT /sw/weights."""
    if not row:
        return {'weights': None, 'sw_levels': None}
    config = WeightConfig.from_row(row)
    weights = {
        k: (v.isoformat() if isinstance(v, datetime) else v)
        for k, v in row.items() if k != 'sw_levels'
    }
    return {'weights': weights, 'sw_levels': [t.to_dict() for t in config.levels]}


# ── Score ────────────────────────────────────────────────────────────────────

@bp.route('/sw/calculate')
@require_caller
def calculate():
    """Score for ?user_id= (default: the caller). Served from cache when fresh."""
    user_id = request.args.get('user_id') or g.caller.user_id
    result = get_scorer().calculate(user_id, g.caller)
    return jsonify(result.to_response())


@bp.route('/sw/recalculate', methods=['POST'])
@require_caller
def recalculate():
    """Force a full recomputation. Other users' scores need elevated privilege."""
    data = request.get_json(silent=True) or {}
    user_id = data.get('user_id') or g.caller.user_id
    if not g.caller.can_act_for(user_id):
        return _forbidden('Only admins can recalculate other users')

    result = get_scorer().recompute(user_id, g.caller)
    return jsonify({
        'success': True,
        'totalSW': result.total,
        'originalSW': result.original_total,
        'baseSW': result.base_total,
        'adminAdjustments': result.admin_adjustments,
        'inflationRate': result.inflation_rate,
        'level': result.tier.to_dict(),
        'message': 'SW recalculated successfully',
    })


# ── Weights ──────────────────────────────────────────────────────────────────

@bp.route('/sw/weights')
@require_caller
def get_weights():
    """Active weight row plus the resolved tier table. Nulls when unconfigured."""
    row = get_scorer().engine.store.get_weights()
    if not row:
        logger.warning("SW weights not configured")
    return jsonify(_weights_body(row))


@bp.route('/sw/weights', methods=['PUT', 'POST'])
@require_caller
def update_weights():
    """Partial update of the weight row (admins only)."""
    if not g.caller.elevated:
        return _forbidden('Admin access required')

    data = request.get_json(silent=True) or {}
    fields = {}
    for key in EDITABLE_WEIGHTS:
        if key not in data:
            continue
        value = data[key]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            return jsonify({'error': f'{key} must be a non-negative number'}), 400
        if key in RATE_FIELDS and value > 1:
            return jsonify({'error': f'{key} must be between 0 and 1'}), 400
        fields[key] = value

    if 'sw_levels' in data:
        levels = coerce_levels(data['sw_levels'] if isinstance(data['sw_levels'], list) else [])
        if not levels:
            return jsonify({'error': 'sw_levels must be a non-empty list of {name, minSW}'}), 400
        fields['sw_levels'] = [t.to_dict() for t in levels]

    if not fields:
        return jsonify({'error': 'No weight fields provided'}), 400

    row = get_scorer().engine.store.update_weights(fields, updated_by=g.caller.user_id)
    if row is None:
        return jsonify({'error': 'SW weights not configured', 'code': 'CONFIG_ERROR'}), 404

    logger.info("SW weights updated by %s: %s", g.caller.user_id, sorted(fields))
    return jsonify(_weights_body(row))


# ── Growth ───────────────────────────────────────────────────────────────────

@bp.route('/sw/growth')
@require_caller
def growth():
    """Growth-ledger points earned over the last 24 hours and 7 days."""
    user_id = request.args.get('user_id') or g.caller.user_id
    store = get_scorer().engine.store
    now = datetime.now(timezone.utc)
    return jsonify({
        'growth24h': store.ledger_points_since(user_id, now - timedelta(hours=24)),
        'growth7d': store.ledger_points_since(user_id, now - timedelta(days=7)),
    })
