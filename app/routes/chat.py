from flask import Blueprint, request, current_app
from app import db
from app.models.chat import ChatThread, ChatMessage
from app.utils.auth import require_company
from app.utils.errors import ApiError, NotFoundError
from app.utils.helpers import to_uuid, utcnow
from app.utils.responses import success

bp = Blueprint('chat', __name__)

SCOPE_KEYS = ('load_id', 'route_id', 'driver_id')

def _load_thread(thread_id):
    """Thread in the caller's company that the caller participates in"""
    user = request.current_user
    thread = ChatThread.query.filter_by(
        id=to_uuid(thread_id, 'thread_id'), company_id=user['company_id']
    ).first()
    if thread is None:
        raise NotFoundError('Thread not found')
    if not thread.has_participant(user['user_id']):
        raise ApiError('Access denied', 403)
    return thread

def _mark_read(thread, user_id):
    """Mark other senders' unread messages as read by user_id"""
    reader = str(user_id)
    unread = ChatMessage.query.filter(
        ChatMessage.thread_id == thread.id,
        ChatMessage.sender_id != user_id,
        ChatMessage.is_read.is_(False),
        ChatMessage.is_deleted.is_(False)
    ).all()
    for message in unread:
        message.is_read = True
        read_by = list(message.read_by or [])
        if reader not in read_by:
            read_by.append(reader)
        message.read_by = read_by
    return len(unread)

@bp.route('/threads', methods=['GET'])
@require_company
def get_threads():
    """
    List chat threads the caller participates in
    ---
    tags:
      - Chat
    parameters:
      - in: query
        name: load_id
        schema:
          type: string
      - in: query
        name: route_id
        schema:
          type: string
      - in: query
        name: driver_id
        schema:
          type: string
      - in: query
        name: thread_type
        schema:
          type: string
          enum: [load, route, driver, general]
    security:
      - Bearer: []
    responses:
      200:
        description: Threads ordered by last message, newest first
      401:
        description: Not authenticated
    """
    user = request.current_user
    query = ChatThread.query.filter_by(company_id=user['company_id'])
    for key in SCOPE_KEYS:
        if request.args.get(key):
            query = query.filter(getattr(ChatThread, key) == to_uuid(request.args[key], key))
    if request.args.get('thread_type'):
        query = query.filter_by(thread_type=request.args['thread_type'])

    threads = query.order_by(ChatThread.last_message_at.desc()).all()
    visible = [thread.to_dict() for thread in threads if thread.has_participant(user['user_id'])]
    return success(visible)

@bp.route('/threads', methods=['POST'])
@require_company
def get_or_create_thread():
    """
    Get the thread for a load/route/driver, creating it when missing
    ---
    tags:
      - Chat
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            required:
              - thread_type
            properties:
              thread_type:
                type: string
              load_id:
                type: string
              route_id:
                type: string
              driver_id:
                type: string
              title:
                type: string
              participant_ids:
                type: array
                items:
                  type: string
    responses:
      200:
        description: Existing thread
      201:
        description: Thread created
    """
    user = request.current_user
    data = request.get_json() or {}
    thread_type = data.get('thread_type') or 'general'
    scope = {key: to_uuid(data.get(key), key) for key in SCOPE_KEYS if data.get(key)}

    existing = ChatThread.query.filter_by(
        company_id=user['company_id'], thread_type=thread_type, **scope
    ).first()
    if existing is not None:
        return success(existing.to_dict())

    participants = [str(user['user_id'])]
    for participant in data.get('participant_ids') or []:
        if str(participant) not in participants:
            participants.append(str(participant))

    thread = ChatThread(
        company_id=user['company_id'],
        thread_type=thread_type,
        title=data.get('title'),
        participants=participants,
        unread_count={},
        **scope
    )
    db.session.add(thread)
    db.session.commit()
    current_app.logger.info(f"Created {thread_type} chat thread {thread.id}")
    return success(thread.to_dict(), 201)

@bp.route('/threads/<thread_id>/messages', methods=['GET'])
@require_company
def get_messages(thread_id):
    """
    Messages in a thread, oldest first; marks them read for the caller
    ---
    tags:
      - Chat
    parameters:
      - in: path
        name: thread_id
        required: true
        schema:
          type: string
      - in: query
        name: limit
        schema:
          type: integer
          default: 50
    security:
      - Bearer: []
    responses:
      200:
        description: Messages
      403:
        description: Access denied
      404:
        description: Thread not found
    """
    user = request.current_user
    thread = _load_thread(thread_id)
    limit = request.args.get('limit', 50, type=int)

    newest = thread.messages.filter_by(is_deleted=False) \
        .order_by(ChatMessage.created_at.desc()).limit(limit).all()

    _mark_read(thread, user['user_id'])
    db.session.commit()

    return success([message.to_dict() for message in reversed(newest)])

@bp.route('/threads/<thread_id>/messages', methods=['POST'])
@require_company
def send_message(thread_id):
    """
    Post a message to a thread
    ---
    tags:
      - Chat
    parameters:
      - in: path
        name: thread_id
        required: true
        schema:
          type: string
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            required:
              - message
            properties:
              message:
                type: string
              message_type:
                type: string
                default: text
              attachments:
                type: array
                items:
                  type: object
    responses:
      201:
        description: Message created
      400:
        description: Empty message
    """
    user = request.current_user
    thread = _load_thread(thread_id)
    data = request.get_json() or {}
    text = (data.get('message') or '').strip()
    if not text:
        raise ApiError('message is required')

    message = ChatMessage(
        thread_id=thread.id,
        company_id=user['company_id'],
        sender_id=user['user_id'],
        message=text,
        message_type=data.get('message_type') or 'text',
        attachments=data.get('attachments') or [],
        read_by=[str(user['user_id'])]
    )
    db.session.add(message)

    sender = str(user['user_id'])
    unread = dict(thread.unread_count or {})
    for participant in thread.participants or []:
        if participant != sender:
            unread[participant] = unread.get(participant, 0) + 1
    thread.unread_count = unread
    thread.last_message_at = utcnow()
    thread.last_message_preview = text[:100]
    db.session.commit()

    return success(message.to_dict(), 201)

@bp.route('/threads/<thread_id>/read', methods=['POST'])
@require_company
def mark_thread_read(thread_id):
    user = request.current_user
    thread = _load_thread(thread_id)

    marked = _mark_read(thread, user['user_id'])
    unread = dict(thread.unread_count or {})
    unread[str(user['user_id'])] = 0
    thread.unread_count = unread
    db.session.commit()

    return success({'marked_read': marked})
