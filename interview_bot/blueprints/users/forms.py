from wtforms import BooleanField, DateField, IntegerField, StringField
from wtforms.validators import Length, NumberRange, Optional

from ...utils.http import ApiForm


class ProfileForm(ApiForm):
    firstName = StringField("First name", validators=[Optional(), Length(max=50)])
    lastName = StringField("Last name", validators=[Optional(), Length(max=50)])
    phone = StringField("Phone", validators=[Optional(), Length(max=30)])
    dateOfBirth = DateField("Date of birth", validators=[Optional()])
    location = StringField("Location", validators=[Optional(), Length(max=100)])
    experience = IntegerField("Experience", validators=[Optional(), NumberRange(min=0, max=50)])
    education = StringField("Education", validators=[Optional(), Length(max=500)])
    linkedinProfile = StringField("LinkedIn", validators=[Optional(), Length(max=255)])
    githubProfile = StringField("GitHub", validators=[Optional(), Length(max=255)])


class ResumeAnalysisForm(ApiForm):
    roleDescription = StringField("Role description", validators=[Optional(), Length(max=5000)])
    updateSkills = BooleanField("Update skills")
