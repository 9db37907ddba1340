"""
Pub/Sub Worker Functions

These functions run once per message published to their topic.
"""

import logging
from typing import Any, Dict

from cloudfn import CloudEvent, on_message_published

logger = logging.getLogger(__name__)

__all__ = ["process_tasks", "send_emails"]


@on_message_published("tasks")
def process_tasks(event: CloudEvent) -> None:
    """Process a task published to the "tasks" topic."""
    message = event.data["message"]
    task: Dict[str, Any] = message.json

    task_id = task.get("id", "unknown")
    task_type = message.attributes.get("type", "default")
    logger.info(f"Processing task {task_id} of type {task_type}")


@on_message_published({
    "topic": "emails",
    "retry": True,  # Redeliver until the mail provider accepts the message
    "memory": "1GiB",
    "timeout_seconds": 120,
})
async def send_emails(event: CloudEvent) -> None:
    """Send an email described by the message payload."""
    email = event.data["message"].json
    logger.info(f"Sending email to {email.get('to', '')}: {email.get('subject', '')}")
