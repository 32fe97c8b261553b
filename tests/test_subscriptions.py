from datetime import datetime, timedelta

from interview_bot.extensions import db, rq
from interview_bot.jobs.subscriptions import sweep_subscriptions
from interview_bot.models.notification import Notification
from interview_bot.models.user import User


def _paid(make_user, ends_in, plan="premium", **fields):
    return make_user(subscription_plan=plan, subscription_end=datetime.utcnow() + ends_in, **fields)


def test_sweep_expires_and_reminds(app, client, make_user):
    lapsed = _paid(make_user, timedelta(days=-1), plan="basic")
    ending = _paid(make_user, timedelta(days=1, hours=12))
    later = _paid(make_user, timedelta(days=20))
    cancelled = _paid(make_user, timedelta(days=-3), subscription_status="cancelled")
    free = make_user(subscription_end=datetime.utcnow() - timedelta(days=5))

    with app.app_context():
        result = sweep_subscriptions()
        assert result == {"expired": [lapsed.id], "reminded": [ending.id]}

        statuses = {u.id: u.subscription_status for u in User.query}
        assert statuses[lapsed.id] == "expired"
        assert db.session.get(User, lapsed.id).subscription_plan == "basic"
        assert {statuses[later.id], statuses[ending.id], statuses[free.id]} == {"active"}
        assert statuses[cancelled.id] == "cancelled"

        sent = {(n.user_id, n.type, n.subject) for n in Notification.query}
        assert sent == {(lapsed.id, "subscription_expired", "Your Subscription Has Expired"),
                        (ending.id, "subscription_expiry", "Subscription Expiring in 2 Days")}

        # one reminder per subscription period
        assert sweep_subscriptions() == {"expired": [], "reminded": []}
        assert Notification.query.count() == 2

    resp = client.post("/api/interviews", headers=lapsed.headers, json={"title": "T", "position": "P"})
    assert resp.status_code == 402
    assert resp.get_json()["data"]["currentPlan"] == "basic"


def test_expire_subscriptions_command(app, make_user):
    _paid(make_user, timedelta(hours=-2))
    result = app.test_cli_runner().invoke(args=["expire-subscriptions"])
    assert result.exit_code == 0
    assert "Expired 1 subscriptions, reminded 0 users" in result.output


def test_reschedule_needs_a_queue(app):
    with app.app_context():
        assert rq.enqueue_in(timedelta(hours=12), sweep_subscriptions, reschedule=True) is None
        assert sweep_subscriptions(reschedule=True) == {"expired": [], "reminded": []}
