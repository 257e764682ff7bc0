import logging
import threading
from contextlib import contextmanager

from flask import current_app
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
import redis as _redis
from rq import Queue

from imagehub.errors import WriterLockTimeout

logger = logging.getLogger(__name__)

db = SQLAlchemy()
migrate = Migrate()

# Initialized lazily in create_app
redis_client: _redis.Redis = None  # type: ignore
task_queue: Queue = None  # type: ignore

WRITER_LOCK_KEY = "imagehub:writer"

# Fallback single-writer lock when Redis is not configured
_local_writer_lock = threading.RLock()


class DummyQueue:
    """No-op queue for development without Redis."""

    def enqueue(self, *args, **kwargs):
        logger.warning("Redis not available, job not queued: %s", args[:1])
        return None


def init_redis(app):
    global redis_client, task_queue
    redis_url = app.config.get("REDIS_URL", "")
    if not redis_url:
        logger.warning("REDIS_URL not set, queue disabled (dev mode)")
        redis_client = None
        task_queue = DummyQueue()
        return

    try:
        redis_client = _redis.from_url(redis_url, decode_responses=False)
        redis_client.ping()
        task_queue = Queue("image-ingest", connection=redis_client)
    except Exception as e:
        logger.warning("Redis connection failed (%s), queue disabled", e)
        redis_client = None
        task_queue = DummyQueue()


@contextmanager
def writer_lock():
    """Serialize every write to the image collection and its stats.

    Uses a Redis lock shared by web and worker processes when Redis is
    available, otherwise a process-wide re-entrant lock. The Redis lock
    expires after ``WRITER_LOCK_TIMEOUT`` seconds; waiting longer than
    ``WRITER_LOCK_WAIT`` raises ``WriterLockTimeout``.
    """
    if redis_client is None:
        with _local_writer_lock:
            yield
        return

    lock = redis_client.lock(
        WRITER_LOCK_KEY,
        timeout=current_app.config["WRITER_LOCK_TIMEOUT"],
        blocking_timeout=current_app.config["WRITER_LOCK_WAIT"],
    )
    if not lock.acquire(blocking=True):
        raise WriterLockTimeout("Timed out waiting for the writer lock")
    try:
        yield
    finally:
        try:
            lock.release()
        except _redis.exceptions.LockError:
            logger.error(
                "Writer lock expired before release; raise WRITER_LOCK_TIMEOUT"
            )
