from flask import Blueprint

bp = Blueprint("interviews", __name__)

from . import routes  # noqa: E402,F401
