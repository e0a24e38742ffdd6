"""Queue of payments settled by the gateway but missing locally."""
import json
import logging
from datetime import datetime
from typing import Any, Dict
import redis

from config import RECONCILIATION_QUEUE_KEY
from monitoring import payment_reconciliation_counter
from services.payment_gateway import PaymentReceipt

logger = logging.getLogger(__name__)


class ReconciliationQueue:
    """Redis list consumed by the out-of-band reconciliation process."""

    def __init__(self, redis_client: redis.Redis, key: str = RECONCILIATION_QUEUE_KEY):
        self.redis_client = redis_client
        self.key = key

    def record(
        self,
        order_id: int,
        payment_key: str,
        receipt: PaymentReceipt,
        reason: str
    ) -> Dict[str, Any]:
        """
        Record a payment that must be reconciled by hand.

        Always logs the entry. A Redis failure is logged too, and does not
        replace the error the caller is about to raise.

        Args:
            order_id: Order the payment was confirmed for
            payment_key: Gateway payment token
            receipt: Gateway receipt
            reason: Why the local commit did not happen

        Returns:
            The recorded entry
        """
        entry = {
            "order_id": order_id,
            "payment_key": payment_key,
            "amount": receipt.amount,
            "method": receipt.method,
            "approved_at": receipt.approved_at.isoformat() if receipt.approved_at else None,
            "reason": reason,
            "recorded_at": datetime.utcnow().isoformat()
        }

        logger.error("Payment settled by gateway but not recorded locally", extra=entry)
        payment_reconciliation_counter.add(1, {"reason": reason})

        try:
            self.redis_client.rpush(self.key, json.dumps(entry))
        except redis.RedisError as e:
            logger.exception("Failed to enqueue payment for reconciliation", extra={
                "order_id": order_id,
                "payment_key": payment_key,
                "error": str(e)
            })
        return entry
