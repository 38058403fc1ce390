import logging

from redis import Redis
from rq import Worker

from portal.app import create_app
from portal.exceptions import ServiceException
from portal.services.invite_service import InviteService
from portal.services.queue_service import NOTIFICATIONS_QUEUE

logger = logging.getLogger('worker')

# Jobs need an app context for the database session and the mailer
app = create_app()


def deliver_invitation(invitation_id: int):
    """
    Resend an invitation email with a freshly rotated token.
    This function will be called by the RQ worker.
    :param invitation_id: ID of the invitation to deliver
    """
    with app.app_context():
        try:
            issued = InviteService.redeliver(invitation_id)
        except ServiceException as e:
            logger.error("Could not redeliver invitation %s: %s", invitation_id, e)
            raise

        if not issued.notified:
            # re-raising marks the job failed so it can be retried from rq
            raise issued.delivery_error

        logger.info("Redelivered invitation %s", invitation_id)


def purge_expired_invitations():
    with app.app_context():
        return InviteService.purge_expired()


if __name__ == '__main__':
    redis_host = app.config['REDIS_HOST']
    redis_port = app.config['REDIS_PORT']

    logger.info("Starting worker with Redis at %s:%s", redis_host, redis_port)
    redis_conn = Redis(host=redis_host, port=redis_port)

    worker = Worker([NOTIFICATIONS_QUEUE], connection=redis_conn)
    logger.info("Worker ready to process notifications")
    worker.work()
