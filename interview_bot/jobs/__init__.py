from flask import has_app_context


def run_in_app_context(fn, *args, **kwargs):
    """Run ``fn`` inside an app context, creating one in RQ worker processes."""
    if has_app_context():
        return fn(*args, **kwargs)
    from .. import create_app
    app = create_app()
    with app.app_context():
        return fn(*args, **kwargs)
