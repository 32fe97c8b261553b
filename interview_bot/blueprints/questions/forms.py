from wtforms import FloatField, StringField
from wtforms.validators import AnyOf, DataRequired, Length, NumberRange, Optional

from ...models.interview import DIFFICULTIES, QUESTION_TYPES
from ...utils.http import ApiForm


class QuestionForm(ApiForm):
    title = StringField("Title", validators=[DataRequired(message="Title is required"), Length(max=200)])
    description = StringField("Description", validators=[Optional(), Length(max=500)])
    category = StringField("Category", validators=[DataRequired(message="Category is required"), Length(max=100)])
    difficulty = StringField("Difficulty", validators=[DataRequired(message="Difficulty is required"),
                                                       AnyOf(DIFFICULTIES)])
    type = StringField("Type", validators=[DataRequired(message="Type is required"), AnyOf(QUESTION_TYPES)])
    question = StringField("Question", validators=[DataRequired(message="Question is required")])
    correctAnswer = StringField("Correct answer", validators=[Optional()])
    explanation = StringField("Explanation", validators=[Optional(), Length(max=1000)])


class QuestionUpdateForm(ApiForm):
    title = StringField("Title", validators=[Optional(), Length(max=200)])
    description = StringField("Description", validators=[Optional(), Length(max=500)])
    category = StringField("Category", validators=[Optional(), Length(max=100)])
    difficulty = StringField("Difficulty", validators=[Optional(), AnyOf(DIFFICULTIES)])
    type = StringField("Type", validators=[Optional(), AnyOf(QUESTION_TYPES)])
    question = StringField("Question", validators=[Optional()])
    correctAnswer = StringField("Correct answer", validators=[Optional()])
    explanation = StringField("Explanation", validators=[Optional(), Length(max=1000)])


class RatingForm(ApiForm):
    rating = FloatField("Rating", validators=[DataRequired(message="Rating is required"),
                                              NumberRange(min=1, max=5, message="Rating must be between 1 and 5")])


class TagForm(ApiForm):
    tag = StringField("Tag", validators=[DataRequired(message="Tag is required"), Length(max=50)])
