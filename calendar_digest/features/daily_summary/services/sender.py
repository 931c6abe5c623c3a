"""
Batched delivery of the outbound queue.

Messages go out in fixed-size batches with a pause between batches. Each
message is tried on the primary channel under the retry policy; if that is
exhausted it is tried once more, with its own retries, on the fallback channel.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence

from calendar_digest.features.daily_summary.domain.models import OutboundMessage
from calendar_digest.features.daily_summary.services.retry import RetryExecutor
from calendar_digest.features.daily_summary.services.tracker import ExecutionTracker
from calendar_digest.infrastructure.observability.logging import get_logger
from calendar_digest.services.mail.channels import MailChannel

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 10
DEFAULT_BATCH_PAUSE = 0.1  # seconds


class BatchSender:
    def __init__(
        self,
        primary: MailChannel,
        fallback: MailChannel,
        retry: RetryExecutor,
        tracker: ExecutionTracker,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_pause: float = DEFAULT_BATCH_PAUSE,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.primary = primary
        self.fallback = fallback
        self.retry = retry
        self.tracker = tracker
        self.batch_size = batch_size
        self.batch_pause = batch_pause
        self._sleep = sleep

    async def send_all(self, queue: Sequence[OutboundMessage]) -> None:
        if not queue:
            logger.info("No messages to send")
            return

        batch_count = (len(queue) + self.batch_size - 1) // self.batch_size
        logger.info("Sending messages", message_count=len(queue), batch_count=batch_count)

        for batch_number, offset in enumerate(range(0, len(queue), self.batch_size), start=1):
            batch = queue[offset : offset + self.batch_size]
            for message in batch:
                await self.send_one(message)

            logger.info("Batch sent", batch=batch_number, of=batch_count, size=len(batch))
            if batch_number < batch_count:
                await self._sleep(self.batch_pause)

    async def send_one(self, message: OutboundMessage) -> bool:
        """Deliver one message; returns False only when both channels failed."""
        try:
            await self.retry.execute(
                lambda: self.primary.send(message), f"send via {self.primary.name} to {message.to}"
            )
            self.tracker.increment_emails_sent()
            logger.info("Email sent", to=message.to, channel=self.primary.name)
            return True
        except Exception as primary_error:
            logger.warning(
                "Primary channel failed, trying fallback",
                to=message.to,
                channel=self.primary.name,
                error=str(primary_error),
            )

        try:
            await self.retry.execute(
                lambda: self.fallback.send(message), f"send via {self.fallback.name} to {message.to}"
            )
        except Exception as fallback_error:
            self.tracker.increment_emails_failed()
            self.tracker.add_error(fallback_error, f"Sending email to {message.to}")
            logger.error(
                "Email delivery failed on all channels",
                to=message.to,
                subject=message.subject,
                error=str(fallback_error),
            )
            return False

        self.tracker.increment_emails_sent()
        logger.info("Email sent", to=message.to, channel=self.fallback.name, fallback=True)
        return True
