from flask_wtf import FlaskForm
from wtforms import IntegerField, SelectField, StringField
from wtforms.validators import DataRequired, Length, Optional


def strip_input(text):
    """Trim surrounding whitespace; names are stored as given otherwise"""
    if not isinstance(text, str):
        return text
    return text.strip()


class CloseSeasonForm(FlaskForm):
    new_season_name = StringField(
        "New season name",
        validators=[
            DataRequired(message="Season name must be a non-empty string"),
            Length(max=100, message="Season name cannot exceed 100 characters"),
        ],
        filters=[strip_input],
    )
    scoring_mode = SelectField(
        "Scoring mode",
        choices=[("", "Inherit"), ("standard", "Standard"), ("legacy", "Legacy")],
        validators=[Optional()],
        default="",
    )
    expected_season_id = IntegerField("Season being closed", validators=[Optional()])
