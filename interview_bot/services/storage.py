import io
import os
import uuid

import boto3
from botocore.client import Config
from flask import current_app
from werkzeug.utils import secure_filename


def _ensure_local_dir():
    d = os.path.abspath(current_app.config['LOCAL_STORAGE_DIR'])
    os.makedirs(d, exist_ok=True)
    return d


def _s3_client():
    s3_kwargs = {}
    endpoint = current_app.config.get('S3_ENDPOINT')
    if endpoint:
        s3_kwargs['endpoint_url'] = endpoint
    region = current_app.config.get('S3_REGION')
    if region:
        s3_kwargs['region_name'] = region
    return boto3.client(
        's3',
        aws_access_key_id=current_app.config.get('S3_ACCESS_KEY'),
        aws_secret_access_key=current_app.config.get('S3_SECRET_KEY'),
        config=Config(signature_version='s3v4', s3={'addressing_style': 'virtual'}),
        **s3_kwargs,
    )


def unique_key(prefix, filename):
    """`prefix/<uuid>_<safe name>` so two uploads of cv.pdf never collide."""
    safe = secure_filename(filename or '') or 'file'
    name = f"{uuid.uuid4().hex}_{safe}"
    return f"{prefix}/{name}" if prefix else name


def save_stream(stream, key):
    if current_app.config.get('STORAGE_BACKEND', 'local') == 's3':
        bucket = current_app.config.get('S3_BUCKET')
        _s3_client().upload_fileobj(stream, bucket, key)
        return f"s3://{bucket}/{key}"

    d = _ensure_local_dir()
    path = os.path.join(d, key)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'wb') as fh:
        fh.write(stream.read())
    return f"file://{path}"


def save_bytes(data: bytes, key: str) -> str:
    return save_stream(io.BytesIO(data), key)


def _split_s3(url):
    bucket, key = url.replace('s3://', '', 1).split('/', 1)
    return bucket, key


def download_bytes(url: str) -> bytes:
    if url.startswith('s3://'):
        bucket, key = _split_s3(url)
        obj = _s3_client().get_object(Bucket=bucket, Key=key)
        return obj['Body'].read()
    elif url.startswith('file://'):
        with open(url.replace('file://', '', 1), 'rb') as f:
            return f.read()
    else:
        raise ValueError("Unsupported URL scheme")


def delete_file(url: str) -> bool:
    if not url:
        return False
    if url.startswith('s3://'):
        bucket, key = _split_s3(url)
        _s3_client().delete_object(Bucket=bucket, Key=key)
        return True
    if url.startswith('file://'):
        path = url.replace('file://', '', 1)
        if os.path.exists(path):
            os.remove(path)
            return True
        return False
    raise ValueError("Unsupported URL scheme")


def public_url(url):
    """Map a stored URL to something a browser can fetch.

    Local files are served by the app under /uploads/; S3 objects get a
    short-lived presigned URL.
    """
    if not url:
        return url
    if url.startswith('file://'):
        rel = os.path.relpath(url.replace('file://', '', 1), _ensure_local_dir())
        return f"/uploads/{rel.replace(os.sep, '/')}"
    if url.startswith('s3://'):
        bucket, key = _split_s3(url)
        return _s3_client().generate_presigned_url(
            'get_object', Params={'Bucket': bucket, 'Key': key}, ExpiresIn=3600)
    return url
