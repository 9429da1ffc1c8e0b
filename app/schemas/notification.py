from datetime import datetime

from pydantic import BaseModel


class NotificationOut(BaseModel):
    id: int
    user_id: int
    category: str
    message: str
    related_entity_type: str | None
    related_entity_id: int | None
    status: str
    priority: str | None
    action_required: bool
    created_at: datetime
    read_at: datetime | None
