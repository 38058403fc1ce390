from flask import current_app
from redis import Redis
from rq import Queue
from typing import Dict

NOTIFICATIONS_QUEUE = 'notifications'


class QueueService:
    _instance = None
    _redis = None
    _queue = None

    @classmethod
    def get_instance(cls):
        if cls._instance is None:
            cls._instance = cls(
                current_app.config['REDIS_HOST'],
                current_app.config['REDIS_PORT']
            )
        return cls._instance

    def __init__(self, redis_host: str, redis_port: int):
        """Initialize Redis connection and queue"""
        self._redis = Redis(host=redis_host, port=redis_port)
        self._queue = Queue(NOTIFICATIONS_QUEUE, connection=self._redis)

    def enqueue_invitation_delivery(self, invitation_id: int):
        """
        Queue a resend of an invitation email.
        The worker rotates the token itself, so no secret goes through Redis.
        :param invitation_id: ID of the invitation
        """
        self._queue.enqueue(
            'worker.deliver_invitation',
            invitation_id,
            job_id=f"invitation:{invitation_id}"
        )

    def enqueue_purge(self):
        """Queue a sweep of expired invitations"""
        self._queue.enqueue('worker.purge_expired_invitations')

    def get_queue_status(self) -> Dict[str, int]:
        """Get current queue statistics"""
        return {
            'queued': len(self._queue),
            'started': len(self._queue.started_job_registry),
            'finished': len(self._queue.finished_job_registry),
            'failed': len(self._queue.failed_job_registry),
        }
