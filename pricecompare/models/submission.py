from datetime import datetime
from ..extensions import db


class UserFormResponse(db.Model):
    """Answers an account submitted for one category."""

    __tablename__ = "user_form_responses"
    __table_args__ = (
        db.UniqueConstraint("user_id", "category", name="uq_user_form_responses_user_category"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    category = db.Column(db.String(64), nullable=False, index=True)

    form_data = db.Column(db.JSON, default=dict, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = db.relationship("User", backref=db.backref("form_responses", lazy="dynamic"))

    def __repr__(self) -> str:
        return f"<UserFormResponse {self.id} user={self.user_id} category={self.category}>"


class VisitorSubmission(db.Model):
    """Answers an anonymous visitor submitted for one category.

    ``claimed_by`` / ``claimed_at`` are set once the row has been copied into
    an account; the row itself is kept.
    """

    __tablename__ = "visitor_submissions"
    __table_args__ = (
        db.UniqueConstraint("visitor_id", "category", name="uq_visitor_submissions_visitor_category"),
    )

    id = db.Column(db.Integer, primary_key=True)
    visitor_id = db.Column(db.String(64), nullable=False, index=True)
    category = db.Column(db.String(64), nullable=False, index=True)

    form_data = db.Column(db.JSON, default=dict, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    claimed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    claimed_at = db.Column(db.DateTime, nullable=True)

    @property
    def is_claimed(self) -> bool:
        return self.claimed_by is not None

    def __repr__(self) -> str:
        return f"<VisitorSubmission {self.id} visitor={self.visitor_id} category={self.category}>"
