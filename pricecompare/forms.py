from flask_wtf import FlaskForm


class ApiForm(FlaskForm):
    """Base for forms posted as JSON by the front end; no CSRF token."""

    class Meta:
        csrf = False

    def error_payload(self) -> dict:
        return {"error": "Invalid input.", "fields": self.errors}
