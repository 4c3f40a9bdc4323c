"""Queue service for background jobs using RQ."""

import os
from datetime import datetime, timezone

import redis
from rq import Queue

from wms.services.jobs import rollover_shift_job, send_payment_notification_job

ROLLOVER_JOB_PREFIX = 'wms-shift-rollover'


class QueueService:
    """Service for managing background job queues."""

    def __init__(self, redis_url=None, connection=None):
        self.redis_conn = connection or self._get_redis_connection(redis_url)
        self.notification_queue = Queue('notifications', connection=self.redis_conn)
        self.shift_queue = Queue('shifts', connection=self.redis_conn)

    def _get_redis_connection(self, redis_url=None):
        """Get Redis connection from environment."""
        redis_url = redis_url or os.getenv('REDIS_URL', 'redis://localhost:6379/0')
        return redis.from_url(redis_url)

    def enqueue_payment_notification(self, payment_id):
        """Queue the notification for a paid payment."""
        return self.notification_queue.enqueue(
            send_payment_notification_job,
            payment_id=payment_id,
        )

    def schedule_next_rollover(self, run_at: datetime):
        """Schedule the shift rollover at ``run_at`` (naive UTC).

        The job id is derived from ``run_at``, so scheduling the same boundary
        twice replaces the earlier job instead of adding a second one.
        """
        # RQ reads naive datetimes as local time
        return self.shift_queue.enqueue_at(
            run_at.replace(tzinfo=timezone.utc),
            rollover_shift_job,
            job_id=f"{ROLLOVER_JOB_PREFIX}-{run_at.strftime('%Y%m%d%H%M')}",
        )

    def get_queue_stats(self):
        """Get queue statistics."""
        return {
            queue.name: {
                'length': len(queue),
                'failed_count': queue.failed_job_registry.count,
                'scheduled_count': queue.scheduled_job_registry.count,
            }
            for queue in (self.notification_queue, self.shift_queue)
        }


# Global queue service instance; the Redis connection opens lazily on first command
queue_service = QueueService()


__all__ = ['QueueService', 'queue_service', 'ROLLOVER_JOB_PREFIX']
