from flask import Blueprint, request, current_app
from app import db
from app.models.notification import Alert
from app.utils.auth import require_company
from app.utils.errors import NotFoundError
from app.utils.helpers import to_uuid
from app.utils.responses import success

bp = Blueprint('alerts', __name__)

@bp.route('/', methods=['GET'])
@require_company
def get_alerts():
    """
    Company alert feed, newest first
    ---
    tags:
      - Alerts
    parameters:
      - in: query
        name: unread
        schema:
          type: boolean
        description: Only unread alerts
      - in: query
        name: page
        schema:
          type: integer
          default: 1
      - in: query
        name: per_page
        schema:
          type: integer
          default: 20
    security:
      - Bearer: []
    responses:
      200:
        description: Page of alerts with total count
    """
    query = Alert.query.filter_by(company_id=request.current_user['company_id'])
    if request.args.get('unread', 'false').lower() == 'true':
        query = query.filter_by(is_read=False)

    page = max(request.args.get('page', 1, type=int), 1)
    per_page = min(max(request.args.get('per_page', current_app.config['POSTS_PER_PAGE'], type=int), 1), 100)
    pagination = query.order_by(Alert.created_at.desc()).paginate(page=page, per_page=per_page, error_out=False)

    return success({
        'alerts': [alert.to_dict() for alert in pagination.items],
        'total': pagination.total,
        'page': page,
        'per_page': per_page
    })

@bp.route('/unread-count', methods=['GET'])
@require_company
def get_unread_count():
    count = Alert.query.filter_by(company_id=request.current_user['company_id'], is_read=False).count()
    return success({'count': count})

@bp.route('/<alert_id>/read', methods=['PUT'])
@require_company
def mark_alert_read(alert_id):
    alert = Alert.query.filter_by(
        id=to_uuid(alert_id, 'alert_id'), company_id=request.current_user['company_id']
    ).first()
    if alert is None:
        raise NotFoundError('Alert not found')

    alert.is_read = True
    db.session.commit()
    return success(alert.to_dict())

@bp.route('/read-all', methods=['PUT'])
@require_company
def mark_all_read():
    updated = Alert.query.filter_by(company_id=request.current_user['company_id'], is_read=False) \
        .update({'is_read': True}, synchronize_session=False)
    db.session.commit()
    return success({'updated': updated})
