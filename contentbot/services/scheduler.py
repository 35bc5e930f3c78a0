from datetime import datetime, timezone
from typing import Any, Dict

from contentbot import deps
from contentbot.services import queue_manager


def run_once() -> Dict[str, Any]:
    # each sweep opens its own sessions
    now = datetime.now(timezone.utc)
    queue = queue_manager.process_due(deps.dispatch_generation, now=now)
    publisher = deps.get_publisher()
    published = publisher.publish_due(now=now)
    webhooks = publisher.retry_due_webhooks(now=now)
    return {
        "status": "ok",
        "generation_started": queue["started"],
        "generation_skipped": queue["skipped"],
        "generation_failed": queue["failed"],
        "published": published,
        "webhooks": webhooks,
    }
