from wtforms import StringField
from wtforms.validators import DataRequired, Length

from ..forms import ApiForm


class AnswerForm(ApiForm):
    answer = StringField("Answer", validators=[DataRequired(), Length(max=255)])
