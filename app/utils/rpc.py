"""
Invoke stored procedures that live in the database.

The database owns the logic for three-way invoice matching, state mileage,
idle detection, ETA and similar computations; this module only calls them by
name with named parameters (PostgreSQL `name => value` notation).
"""
import logging
import re
import uuid
from datetime import date, datetime
from decimal import Decimal
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.utils.errors import RpcError

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r'^[a-z_][a-z0-9_]*$')

def _build_statement(name, params):
    if not _IDENTIFIER.match(name):
        raise ValueError(f'Invalid function name: {name}')
    for key in params:
        if not _IDENTIFIER.match(key):
            raise ValueError(f'Invalid parameter name: {key}')
    args = ', '.join(f'{key} => :{key}' for key in params)
    return text(f'SELECT * FROM {name}({args})')

def call_rpc(name, **params):
    """Call a set-returning function and return its rows as dicts"""
    statement = _build_statement(name, params)
    try:
        result = db.session.execute(statement, params)
        rows = [dict(row._mapping) for row in result]
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f'RPC {name} failed: {e}')
        raise RpcError(name, str(getattr(e, 'orig', None) or e)) from e
    return rows

def call_rpc_scalar(name, **params):
    """Call a function returning a single value (id, count, rate...)"""
    rows = call_rpc(name, **params)
    if not rows:
        return None
    first = rows[0]
    if len(first) == 1:
        return next(iter(first.values()))
    return first

def jsonable(row):
    """Make an RPC row safe for jsonify (UUID, date and Decimal values)"""
    out = {}
    for key, value in row.items():
        if isinstance(value, uuid.UUID):
            value = str(value)
        elif isinstance(value, (datetime, date)):
            value = value.isoformat()
        elif isinstance(value, Decimal):
            value = float(value)
        out[key] = value
    return out
