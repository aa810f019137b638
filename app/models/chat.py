from app import db
from sqlalchemy import Uuid
import uuid
from datetime import datetime, timezone

class ChatThread(db.Model):
    """Conversation scoped to a load, route or driver"""
    __tablename__ = 'chat_threads'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    load_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('loads.id', ondelete='CASCADE'))
    route_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('routes.id', ondelete='CASCADE'))
    driver_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('drivers.id', ondelete='CASCADE'))
    thread_type = db.Column(db.String(30), nullable=False, default='general')  # load, route, driver, general
    title = db.Column(db.String(255))

    # User ids (as strings) allowed to read and post
    participants = db.Column(db.JSON, nullable=False, default=list)
    # {user_id: number of unread messages}
    unread_count = db.Column(db.JSON, nullable=False, default=dict)

    last_message_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    last_message_preview = db.Column(db.String(255))
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    messages = db.relationship('ChatMessage', backref='thread', lazy='dynamic', cascade='all, delete-orphan')

    def has_participant(self, user_id):
        return str(user_id) in (self.participants or [])

    def to_dict(self):
        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'load_id': str(self.load_id) if self.load_id else None,
            'route_id': str(self.route_id) if self.route_id else None,
            'driver_id': str(self.driver_id) if self.driver_id else None,
            'thread_type': self.thread_type,
            'title': self.title,
            'participants': self.participants or [],
            'unread_count': self.unread_count or {},
            'last_message_at': self.last_message_at.isoformat() if self.last_message_at else None,
            'last_message_preview': self.last_message_preview,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }

    def __repr__(self):
        return f'<ChatThread {self.id} {self.thread_type}>'

class ChatMessage(db.Model):
    __tablename__ = 'chat_messages'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    thread_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('chat_threads.id', ondelete='CASCADE'), nullable=False, index=True)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False)
    sender_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('users.id', ondelete='SET NULL'))
    message = db.Column(db.Text, nullable=False)
    message_type = db.Column(db.String(20), default='text')  # text, image, file, location
    attachments = db.Column(db.JSON, default=list)
    is_read = db.Column(db.Boolean, default=False)
    read_by = db.Column(db.JSON, default=list)
    is_deleted = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)

    def to_dict(self):
        return {
            'id': str(self.id),
            'thread_id': str(self.thread_id),
            'company_id': str(self.company_id),
            'sender_id': str(self.sender_id) if self.sender_id else None,
            'message': self.message,
            'message_type': self.message_type,
            'attachments': self.attachments or [],
            'is_read': self.is_read,
            'read_by': self.read_by or [],
            'created_at': self.created_at.isoformat() if self.created_at else None
        }

    def __repr__(self):
        return f'<ChatMessage {self.id}>'
