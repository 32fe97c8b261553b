from flask import current_app
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from redis import Redis
from rq import Queue

# kwargs understood by RQ but not by the job functions themselves
RQ_KEYS = {'job_timeout', 'timeout', 'at_front', 'depends_on', 'result_ttl', 'ttl', 'meta', 'description',
           'job_id'}


class RQWrapper:
    def __init__(self):
        self.redis = None
        self.queue = None

    def init_app(self, app):
        url = app.config.get("REDIS_URL")
        if not url:
            # no redis configured: every job runs inline
            self.redis = None
            self.queue = None
            return
        self.redis = Redis.from_url(url)
        self.queue = Queue("default", connection=self.redis)

    def _run_inline(self, func, args, kwargs):
        safe_kwargs = {k: v for k, v in kwargs.items() if k not in RQ_KEYS}
        try:
            return func(*args, **safe_kwargs)
        except Exception:
            # jobs are side effects; a failure must not fail the request that queued it
            current_app.logger.exception('Synchronous execution of %s failed', getattr(func, '__name__', func))
            return None

    def enqueue(self, func, *args, **kwargs):
        """Enqueue `func` on RQ, or call it synchronously when Redis is unavailable."""
        if not self.queue:
            return self._run_inline(func, args, kwargs)
        try:
            return self.queue.enqueue(func, *args, **kwargs)
        except Exception:
            current_app.logger.exception('RQ enqueue failed, falling back to sync execution')
            return self._run_inline(func, args, kwargs)

    def enqueue_in(self, delay, func, *args, **kwargs):
        """Schedule `func` after `delay` (a timedelta). Needs Redis and a worker started with the scheduler."""
        if not self.queue:
            current_app.logger.info('No job queue; not scheduling %s', getattr(func, '__name__', func))
            return None
        return self.queue.enqueue_in(delay, func, *args, **kwargs)


def api_rate_limit():
    """Limit string built from RATE_LIMIT_MAX_REQUESTS per RATE_LIMIT_WINDOW_MS."""
    window = max(1, int(current_app.config["RATE_LIMIT_WINDOW_MS"]) // 1000)
    return f"{current_app.config['RATE_LIMIT_MAX_REQUESTS']} per {window} seconds"


db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
cors = CORS()
limiter = Limiter(key_func=get_remote_address, default_limits=[api_rate_limit])
rq = RQWrapper()
