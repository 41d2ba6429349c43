"""Column helpers shared by the models (Postgres in production, SQLite in tests)"""
from ethiomaids import db
from sqlalchemy.dialects.postgresql import JSONB
import uuid
from datetime import datetime, timezone

JSONType = db.JSON().with_variant(JSONB(), 'postgresql')

def new_id():
    return str(uuid.uuid4())

def utcnow():
    return datetime.now(timezone.utc)

def isoformat(value):
    return value.isoformat() if value else None

def as_float(value):
    return float(value) if value is not None else None
