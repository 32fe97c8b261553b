"""JWT issuing and verification for access and refresh tokens."""

import secrets
from datetime import datetime

from flask import current_app
from jose import jwt


def _encode(claims, secret, lifetime):
    now = datetime.utcnow()
    payload = {**claims, "iat": now, "exp": now + lifetime}
    return jwt.encode(payload, secret, algorithm=current_app.config["JWT_ALGORITHM"])


def generate_token(user_id):
    cfg = current_app.config
    return _encode({"userId": user_id}, cfg["JWT_SECRET"], cfg["JWT_EXPIRES_IN"])


def generate_refresh_token(user_id):
    cfg = current_app.config
    return _encode({"userId": user_id, "type": "refresh"},
                   cfg["REFRESH_TOKEN_SECRET"], cfg["REFRESH_TOKEN_EXPIRES_IN"])


def issue_tokens(user):
    return {
        "accessToken": generate_token(user.id),
        "refreshToken": generate_refresh_token(user.id),
    }


def decode_token(token):
    """Decode an access token. Raises jose.ExpiredSignatureError / JWTError."""
    cfg = current_app.config
    return jwt.decode(token, cfg["JWT_SECRET"], algorithms=[cfg["JWT_ALGORITHM"]])


def decode_refresh_token(token):
    cfg = current_app.config
    return jwt.decode(token, cfg["REFRESH_TOKEN_SECRET"], algorithms=[cfg["JWT_ALGORITHM"]])


def random_token():
    return secrets.token_hex(32)
