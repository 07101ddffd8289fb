import json
from sqlalchemy.orm import Session
from cuehall.models.core import ActionLog

def log_action(db: Session, actor_user_id: str | None, action_type: str,
               entity_type: str | None = None, entity_id: str | None = None,
               details: dict | None = None):
    entry = ActionLog(
        actor_user_id=actor_user_id,
        action_type=action_type,
        entity_type=entity_type, entity_id=entity_id,
        details=json.dumps(details, default=str) if details else None,
    )
    db.add(entry)
    return entry
