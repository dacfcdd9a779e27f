import pytest

from pricecompare import create_app
from pricecompare.config import TestConfig
from pricecompare.extensions import db
from pricecompare.models import Role, User, UserFormResponse, VisitorSubmission


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """A request context for calling services directly."""
    with app.test_request_context():
        yield


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user():
    def _factory(name="Alice", email="alice@example.com", password="password123", role=Role.MEMBER):
        user = User(name=name, email=email, role=role)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    return _factory


@pytest.fixture
def seed():
    def _account(user, category, answers):
        row = UserFormResponse(user_id=user.id, category=category, form_data=dict(answers))
        db.session.add(row)
        db.session.commit()
        return row

    def _visitor(visitor_id, category, answers):
        row = VisitorSubmission(visitor_id=visitor_id, category=category, form_data=dict(answers))
        db.session.add(row)
        db.session.commit()
        return row

    class Seed:
        account = staticmethod(_account)
        visitor = staticmethod(_visitor)

    return Seed
