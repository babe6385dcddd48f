import pytest
from tracker_auth.models.user import User
from tracker_auth.uow import SQLAlchemyUnitOfWork as RWuow

from tests.factories.user import UserFactory


class TestSQLAlchemyUnitOfWork:
    def test_commits_on_success(self, session):
        with RWuow() as uow:
            uow.users.add(UserFactory.build(email="committed@example.com"))

        assert session.query(User).filter_by(email="committed@example.com").one()

    def test_rolls_back_on_error(self, session):
        with pytest.raises(ValueError), RWuow() as uow:
            uow.users.add(UserFactory.build(email="rolled-back@example.com"))
            raise ValueError("boom")

        assert session.query(User).filter_by(email="rolled-back@example.com").count() == 0

    def test_repositories_share_the_session(self, session):
        uow = RWuow()
        assert uow.users.session is uow.refresh_tokens.session is uow.session
