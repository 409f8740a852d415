"""In-app channel: a per-recipient inbox read by the client socket layer."""

import threading
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict

from infrastructure.operations import OperationResult
from modules.reminders.channels.base import NotificationChannel
from modules.reminders.clock import Clock
from modules.reminders.models import Channel, InAppContent, OutboundMessage


class InAppNotification(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    occurrence_id: str
    title: str
    body: str
    created_at: datetime


class InAppChannel(NotificationChannel):
    channel = Channel.IN_APP

    def __init__(self, clock: Optional[Clock] = None):
        super().__init__(clock)
        self._inboxes: Dict[str, List[InAppNotification]] = defaultdict(list)
        self._lock = threading.Lock()

    def resolve_recipient(self, recipient: str) -> OperationResult:
        if not recipient:
            return OperationResult.permanent_error(
                "In-app recipient is required", error_code="INVALID_ADDRESS"
            )
        return OperationResult.success(data={"address": recipient})

    def _deliver(self, message: OutboundMessage, address: str) -> OperationResult:
        content = message.content
        if not isinstance(content, InAppContent):
            return OperationResult.permanent_error(
                f"in-app channel cannot send {type(content).__name__}",
                error_code="MALFORMED_CONTENT",
            )
        notification = InAppNotification(
            id=str(uuid4()),
            occurrence_id=message.occurrence_id,
            title=content.title,
            body=content.body,
            created_at=self._clock(),
        )
        with self._lock:
            self._inboxes[address].append(notification)
        return OperationResult.success(
            data={"message_id": notification.id}, message="stored in inbox"
        )

    def inbox(self, recipient: str) -> List[InAppNotification]:
        with self._lock:
            return list(self._inboxes.get(recipient, []))
