from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class Notification:
    id: str
    recipient_id: str
    message: str
    created_at: datetime
    context: dict[str, Any] = field(default_factory=dict)
    read: bool = False
