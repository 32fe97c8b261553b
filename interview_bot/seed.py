"""Initial data: the admin account and a starter question bank."""

from datetime import datetime, timedelta

import click
from flask import current_app

from .extensions import db
from .models.question_bank import QuestionBank
from .models.user import User

DEFAULT_QUESTIONS = [
    {
        "title": "Tell me about yourself",
        "question": "Tell me about yourself and your professional background.",
        "difficulty": "easy",
        "tags": ["introduction", "background"],
        "correct_answer": "A concise summary of relevant experience, key skills and what you are looking for next.",
    },
    {
        "title": "Why do you want this job?",
        "question": "Why do you want this job, and why at our company?",
        "difficulty": "easy",
        "tags": ["motivation", "company-fit"],
        "correct_answer": "Shows research about the company and links the role to your skills and career goals.",
    },
    {
        "title": "What is your greatest strength?",
        "question": "What is your greatest strength, and how has it helped you at work?",
        "difficulty": "medium",
        "tags": ["strengths", "self-assessment"],
        "correct_answer": "One relevant strength backed by a concrete example and its impact.",
    },
    {
        "title": "Describe a challenging situation you handled",
        "question": "Describe a challenging situation you faced at work and how you handled it.",
        "difficulty": "medium",
        "tags": ["problem-solving", "star"],
        "correct_answer": "Uses the STAR method: situation, task, action and a measurable result.",
    },
    {
        "title": "Where do you see yourself in 5 years?",
        "question": "Where do you see yourself in 5 years?",
        "difficulty": "easy",
        "tags": ["career-goals", "motivation"],
        "correct_answer": "Realistic goals that show ambition and fit with the growth path of the role.",
    },
]


def seed_admin():
    email = current_app.config["ADMIN_EMAIL"].lower()
    admin = User.query.filter_by(email=email).first()
    if admin:
        return admin, False
    now = datetime.utcnow()
    admin = User(email=email, first_name="Admin", last_name="User", role="admin",
                 is_email_verified=True, subscription_plan="enterprise", subscription_status="active",
                 subscription_start=now, subscription_end=now + timedelta(days=365))
    admin.set_password(current_app.config["ADMIN_DEFAULT_PASSWORD"])
    db.session.add(admin)
    db.session.commit()
    return admin, True


def seed_questions(created_by=None):
    """Insert the starter questions when the bank is empty; returns how many were added."""
    if QuestionBank.query.first() is not None:
        return 0
    for item in DEFAULT_QUESTIONS:
        db.session.add(QuestionBank(category="Behavioral", type="open_ended", created_by=created_by, **item))
    db.session.commit()
    return len(DEFAULT_QUESTIONS)


def register_commands(app):
    @app.cli.command("seed")
    def seed_command():
        """Create the admin user and the default question bank."""
        admin, created = seed_admin()
        if created:
            click.echo(f"Created admin {admin.email}")
        else:
            click.echo(f"Admin {admin.email} already exists")
        click.echo(f"Added {seed_questions(admin.id)} questions")

    @app.cli.command("expire-subscriptions")
    def expire_subscriptions_command():
        """Expire lapsed paid subscriptions and send renewal reminders."""
        from .jobs.subscriptions import sweep_subscriptions
        result = sweep_subscriptions()
        click.echo(f"Expired {len(result['expired'])} subscriptions, reminded {len(result['reminded'])} users")
