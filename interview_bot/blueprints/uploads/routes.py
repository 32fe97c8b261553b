import os

from flask import current_app, request
from flask_login import current_user, login_required

from . import bp
from ...errors import ValidationError
from ...extensions import db
from ...models.upload import Upload
from ...services import stt
from ...services.storage import public_url, save_bytes, unique_key
from ...utils.http import success

ALLOWED_EXTENSIONS = {
    "resume": {".pdf", ".doc", ".docx"},
    "avatar": {".jpg", ".jpeg", ".png", ".gif", ".webp"},
    "audio": {".webm", ".wav", ".mp3", ".ogg", ".m4a", ".flac", ".aac"},
    "document": {".pdf", ".doc", ".docx", ".txt"},
}


def _uploaded_file(*names):
    for name in names:
        f = request.files.get(name)
        if f and f.filename:
            return f
    raise ValidationError("No file uploaded")


def _check_extension(kind, filename):
    ext = os.path.splitext(filename or "")[1].lower()
    if ext not in ALLOWED_EXTENSIONS[kind]:
        raise ValidationError("File type not allowed")


def _record(kind, url, f, size):
    upload = Upload(user_id=current_user.id, kind=kind, storage_url=url,
                    file_metadata={"filename": f.filename, "size": size, "content_type": f.mimetype})
    db.session.add(upload)
    return upload


@bp.post("")
@login_required
def upload_file():
    kind = request.form.get("kind", "document")
    if kind not in ALLOWED_EXTENSIONS:
        raise ValidationError(f"kind must be one of: {', '.join(ALLOWED_EXTENSIONS)}")
    f = _uploaded_file("file")
    _check_extension(kind, f.filename)

    content = f.read()
    url = save_bytes(content, unique_key(f"{kind}s/{current_user.id}", f.filename))
    upload = _record(kind, url, f, len(content))
    if kind == "resume":
        current_user.resume = public_url(url)
    elif kind == "avatar":
        current_user.avatar = public_url(url)
    db.session.commit()
    current_app.logger.info("User %s uploaded %s %s", current_user.id, kind, f.filename)

    data = upload.to_dict()
    data["publicUrl"] = public_url(url)
    return success({"upload": data, "user": current_user.to_dict()}, "File uploaded successfully", 201)


@bp.post("/transcribe")
@login_required
def transcribe():
    f = _uploaded_file("audio", "file")
    _check_extension("audio", f.filename)
    language = request.form.get("language", "en-US")
    audio = f.read()
    if not audio:
        raise ValidationError("Uploaded audio is empty")

    result = stt.transcribe_audio(audio, stt.encoding_for(f.filename), language)
    url = save_bytes(audio, unique_key(f"audios/{current_user.id}", f.filename))
    upload = _record("audio", url, f, len(audio))
    db.session.commit()
    return success({
        "upload": upload.to_dict(),
        "transcription": result,
        "quality": stt.analyze_audio_quality(audio),
    }, "Audio transcribed successfully")


@bp.get("/languages")
@login_required
def languages():
    return success({"languages": stt.SUPPORTED_LANGUAGES})
