"""Run an RQ worker inside the Flask app context.

Usage:
  export REDIS_URL=redis://localhost:6379/0
  python scripts/run_rq_worker.py

Report generation and email jobs use `current_app` and the Flask-SQLAlchemy
session, so the worker keeps one app context open for its whole life.
On start it queues the subscription sweep, which then reschedules itself.
"""

import os
import sys

# project root on sys.path when run from scripts/
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from redis import Redis  # noqa: E402
from rq import Queue, Worker  # noqa: E402

from interview_bot import create_app  # noqa: E402
from interview_bot.extensions import rq  # noqa: E402
from interview_bot.jobs.subscriptions import SWEEP_JOB_ID, sweep_subscriptions  # noqa: E402


def main():
    app = create_app()
    redis_url = app.config.get("REDIS_URL")
    if not redis_url:
        sys.exit("REDIS_URL is not set; jobs run inline and no worker is needed")
    conn = Redis.from_url(redis_url)
    with app.app_context():
        # one recurring sweep; re-enqueueing under the same id replaces a pending run
        rq.enqueue(sweep_subscriptions, reschedule=True, job_id=SWEEP_JOB_ID)
        worker = Worker([Queue("default", connection=conn)], connection=conn)
        app.logger.info("RQ worker starting (pid %s)", os.getpid())
        try:
            worker.work(burst=False, with_scheduler=True, logging_level=app.config.get("LOG_LEVEL", "INFO"))
        finally:
            app.logger.info("RQ worker exiting (pid %s)", os.getpid())


if __name__ == "__main__":
    main()
