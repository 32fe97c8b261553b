from flask import jsonify, request
from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict

from ..errors import ValidationError, form_errors

MAX_PAGE_SIZE = 100


def success(data=None, message=None, status=200):
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return jsonify(body), status


def json_body():
    """The JSON request body as a dict (empty when absent)."""
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def coerce_int(val):
    if val is None or val == "":
        return None
    try:
        return int(val)
    except (TypeError, ValueError):
        return None


def page_args(default_limit=10):
    page = max(request.args.get("page", default=1, type=int) or 1, 1)
    limit = request.args.get("limit", default=default_limit, type=int) or default_limit
    return page, min(max(limit, 1), MAX_PAGE_SIZE)


def paginate(query, default_limit=10):
    """Paginate a query from ``?page=&limit=``; returns (items, pagination dict)."""
    page, limit = page_args(default_limit)
    result = query.paginate(page=page, per_page=limit, error_out=False)
    return result.items, {
        "page": page,
        "limit": limit,
        "total": result.total,
        "pages": result.pages,
    }


class ApiForm(FlaskForm):
    """FlaskForm fed from a JSON body (flat scalars only), without CSRF."""

    class Meta:
        csrf = False

    def __init__(self, *args, **kwargs):
        if "formdata" not in kwargs and request.is_json:
            kwargs["formdata"] = _json_formdata(json_body())
        super().__init__(*args, **kwargs)

    def validate_or_raise(self, message="Validation failed"):
        if not self.validate():
            raise ValidationError(message, errors=form_errors(self))
        return self


def _json_formdata(payload):
    data = MultiDict()
    for key, value in payload.items():
        if value is None or isinstance(value, (dict, list)):
            continue
        data[key] = value if isinstance(value, bool) else str(value)
    return data
