"""Background notifications for derived state left stale by a request"""

import uuid
from typing import Optional

from fastapi import BackgroundTasks

from copra_ledger.infrastructure.clients.reconciliation import ReconciliationClient


def schedule_stale_score_event(
    background_tasks: BackgroundTasks,
    client: ReconciliationClient,
    supplier_id: uuid.UUID,
    operation: str,
    request_id: Optional[str] = None,
) -> None:
    background_tasks.add_task(
        client.send_stale_score_event,
        {
            "event": "CREDIT_SCORE_STALE",
            "supplier_id": str(supplier_id),
            "operation": operation,
            "request_id": request_id,
        },
    )
