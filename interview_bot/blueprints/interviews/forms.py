from wtforms import BooleanField, DateTimeField, IntegerField, StringField
from wtforms.validators import AnyOf, DataRequired, Length, NumberRange, Optional

from ...models.interview import DIFFICULTIES, INTERVIEW_TYPES
from ...utils.http import ApiForm

ISO_FORMATS = ["%Y-%m-%dT%H:%M:%S.%fZ", "%Y-%m-%dT%H:%M:%SZ", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M",
               "%Y-%m-%d %H:%M:%S"]


class InterviewForm(ApiForm):
    title = StringField("Title", validators=[DataRequired(message="Title is required"), Length(max=200)])
    description = StringField("Description", validators=[Optional(), Length(max=1000)])
    position = StringField("Position", validators=[DataRequired(message="Position is required"), Length(max=100)])
    company = StringField("Company", validators=[Optional(), Length(max=100)])
    roleDescription = StringField("Role description", validators=[Optional(), Length(max=5000)])
    difficulty = StringField("Difficulty", default="medium", validators=[Optional(), AnyOf(DIFFICULTIES)])
    type = StringField("Type", default="mixed", validators=[Optional(), AnyOf(INTERVIEW_TYPES)])
    scheduledAt = DateTimeField("Scheduled at", format=ISO_FORMATS, validators=[Optional()])
    questionsCount = IntegerField("Questions", validators=[Optional(), NumberRange(min=1, max=50)])
    useAI = BooleanField("Use AI")
    generateAudio = BooleanField("Generate audio")
    useResume = BooleanField("Use resume")


class ResponseForm(ApiForm):
    questionId = IntegerField("Question", validators=[Optional()])
    questionIndex = IntegerField("Question index", validators=[Optional()])
    answer = StringField("Answer", validators=[Optional(), Length(max=10000)])
    audioUrl = StringField("Audio", validators=[Optional(), Length(max=500)])
    videoUrl = StringField("Video", validators=[Optional(), Length(max=500)])
    timeTaken = IntegerField("Time taken", default=0, validators=[Optional(), NumberRange(min=0)])


class FollowUpForm(ApiForm):
    questionId = IntegerField("Question", validators=[Optional()])
    questionIndex = IntegerField("Question index", validators=[Optional()])
    count = IntegerField("Count", default=2, validators=[Optional(), NumberRange(min=1, max=5)])


class VoiceTestForm(ApiForm):
    text = StringField("Text", validators=[Optional(), Length(max=500)])
    voice = StringField("Voice", validators=[Optional(), Length(max=100)])
    language = StringField("Language", default="en-US", validators=[Optional(), Length(max=10)])
