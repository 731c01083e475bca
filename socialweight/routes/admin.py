"""
Admin routes: permanent SW bonuses and penalties.

Each adjustment is recorded in admin_sw_adjustments, then the user's score
is served through the cached path, whose overlay step picks the new
adjustment up immediately without a full recomputation.
"""
import logging

from flask import Blueprint, g, jsonify, request

from socialweight.scoring.engine import get_scorer
from socialweight.services.auth import require_caller

logger = logging.getLogger('routes.admin')

bp = Blueprint('admin', __name__, url_prefix='/admin')


def _adjust(adjustment_type, sign, default_reason):
    if not g.caller.elevated:
        return jsonify({'error': 'Forbidden', 'code': 'ACCESS_DENIED'}), 403

    data = request.get_json(silent=True) or {}
    user_id = data.get('user_id')
    points = data.get('points')
    reason = data.get('reason') or default_reason

    if not user_id:
        return jsonify({'error': 'user_id is required'}), 400
    if isinstance(points, float) and points.is_integer():
        points = int(points)
    if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
        return jsonify({'error': 'points must be a positive integer'}), 400

    scorer = get_scorer()
    previous = scorer.peek(user_id)
    previous_total = previous['total'] if previous else 0

    adjustment_id = scorer.engine.store.add_admin_adjustment(
        user_id, sign * points, adjustment_type,
        reason=reason, created_by=g.caller.user_id,
    )
    logger.info("Admin %s recorded %s of %s points for %s (adjustment %s)",
                g.caller.user_id, adjustment_type, points, user_id, adjustment_id,
                extra={'user_id': user_id})

    result = scorer.calculate(user_id, g.caller)
    return jsonify({
        'ok': True,
        'adjustment_id': adjustment_id,
        'previous_total': previous_total,
        'new_total': result.total,
        'points_added': sign * points,
        'score': result.to_response(),
    })


@bp.route('/users/sw-bonus', methods=['POST'])
@require_caller
def sw_bonus():
    """Grant a permanent SW bonus."""
    return _adjust('bonus', 1, 'Admin bonus')


@bp.route('/users/sw-penalty', methods=['POST'])
@require_caller
def sw_penalty():
    """Apply a permanent SW penalty."""
    return _adjust('penalty', -1, 'Admin penalty')
