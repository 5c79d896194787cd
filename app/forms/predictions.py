import re

from flask_wtf import FlaskForm
from wtforms import IntegerField
from wtforms.validators import InputRequired, NumberRange, Optional, ValidationError

INTEGER_RE = re.compile(r"^-?\d+$")


class StrictInteger:
    """Reject values IntegerField would silently coerce, like "2.5" or "True" """

    def __init__(self, message=None):
        self.message = message or "Must be a whole number."

    def __call__(self, form, field):
        if not field.raw_data:
            return
        if not INTEGER_RE.match(str(field.raw_data[0]).strip()):
            raise ValidationError(self.message)


def score_field(label, required=True):
    presence = InputRequired() if required else Optional()
    return IntegerField(
        label,
        validators=[
            presence,
            StrictInteger(),
            NumberRange(min=0, message="Scores cannot be negative."),
        ],
    )


class PredictionForm(FlaskForm):
    match_id = IntegerField("Match", validators=[InputRequired(), StrictInteger()])
    home_score = score_field("Home score")
    away_score = score_field("Away score")
    home_score_halftime = score_field("Home halftime score", required=False)
    away_score_halftime = score_field("Away halftime score", required=False)
    user_id = IntegerField("On behalf of", validators=[Optional(), StrictInteger()])
