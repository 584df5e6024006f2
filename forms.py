from flask_wtf import FlaskForm
from wtforms import PasswordField, StringField
from wtforms.validators import AnyOf, DataRequired, Length

SYNC_OPERATION_CHOICES = ("pull", "push")


class JsonForm(FlaskForm):
    """Form populated from a decoded JSON body instead of request form data."""

    class Meta:
        csrf = False

    def __init__(self, payload=None, **kwargs):
        data = {
            key: value if value is None or isinstance(value, str) else str(value)
            for key, value in (payload or {}).items()
        }
        super().__init__(formdata=None, data=data, **kwargs)

    def first_error(self) -> str | None:
        for field in self:
            if field.errors:
                return field.errors[0]
        return None


class GitSyncForm(JsonForm):
    operation = StringField(
        "Operation",
        validators=[
            DataRequired(message="Missing operation"),
            AnyOf(SYNC_OPERATION_CHOICES, message="Operation must be either 'pull' or 'push'"),
        ],
    )
    customUrl = StringField(
        "Custom repository URL",
        validators=[
            DataRequired(message="Missing required URLs"),
            Length(max=2048, message="Custom repository URL is too long"),
        ],
    )
    masterUrl = StringField(
        "Master repository URL",
        validators=[Length(max=2048, message="Master repository URL is too long")],
    )


class TokenRequestForm(JsonForm):
    username = StringField("Username", [DataRequired(message="Username is required.")])
    password = PasswordField("Password", [DataRequired(message="Password is required.")])
