"""RQ worker for background job processing."""

import os

import redis
from dotenv import load_dotenv
from rq import Queue, Worker

# Load environment variables
load_dotenv()

QUEUE_NAMES = ('notifications', 'shifts')


def get_redis_connection():
    """Get Redis connection from environment."""
    redis_url = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
    return redis.from_url(redis_url)


def setup_queues(redis_conn):
    """Setup RQ queues, notifications first."""
    return [Queue(name, connection=redis_conn) for name in QUEUE_NAMES]


def main():
    """Start the RQ worker with its scheduler so rollovers fire on time."""
    redis_conn = get_redis_connection()
    queues = setup_queues(redis_conn)
    worker = Worker(queues, connection=redis_conn)

    print("Starting RQ worker...")
    print(f"Listening on queues: {list(QUEUE_NAMES)}")

    try:
        worker.work(with_scheduler=True)
    except KeyboardInterrupt:
        print("\nWorker stopped by user")


if __name__ == '__main__':
    main()
