"""RQ worker process entrypoint for queued webhook deliveries."""

import logging

from rq import Worker

from services.event_queue import WEBHOOK_QUEUE_NAME, get_redis_connection


def main():
    logging.basicConfig(level=logging.INFO)
    redis_conn = get_redis_connection()
    worker = Worker([WEBHOOK_QUEUE_NAME], connection=redis_conn)
    worker.work()


if __name__ == "__main__":
    main()
