import uuid

import pytest
from fastapi import HTTPException

from docflow.schemas.notifications import NotificationCreate
from docflow.services.notifications import Notifications


@pytest.fixture()
def notifications_batch(db_session, user):
    return [
        Notifications.create(
            db_session,
            NotificationCreate(user_id=user.id, title=f"Notice {i}", message=f"Body {i}"),
        )
        for i in range(3)
    ]


class TestNotificationsCreate:
    def test_create_defaults_to_system(self, db_session, user):
        n = Notifications.create(
            db_session, NotificationCreate(user_id=user.id, title="Hi", message="Hello")
        )
        assert n.type.value == "system"
        assert n.is_read is False
        assert n.sent_at is not None

    def test_create_invalid_type(self, db_session, user):
        with pytest.raises(HTTPException) as exc:
            Notifications.create(
                db_session,
                NotificationCreate(user_id=user.id, type="sms", title="Hi", message="x"),
            )
        assert exc.value.status_code == 400

    def test_create_unknown_user(self, db_session):
        with pytest.raises(HTTPException) as exc:
            Notifications.create(
                db_session,
                NotificationCreate(user_id=uuid.uuid4(), title="Hi", message="x"),
            )
        assert exc.value.status_code == 404


class TestNotificationsRead:
    def test_mark_read_twice_is_idempotent(self, db_session, notifications_batch):
        target = notifications_batch[0]
        first = Notifications.mark_read(db_session, str(target.id))
        read_at = first.read_at
        second = Notifications.mark_read(db_session, str(target.id))
        assert second.is_read is True
        assert second.read_at == read_at

    def test_mark_read_missing(self, db_session):
        with pytest.raises(HTTPException) as exc:
            Notifications.mark_read(db_session, str(uuid.uuid4()))
        assert exc.value.status_code == 404

    def test_unread_count_and_mark_all(self, db_session, user, notifications_batch):
        Notifications.mark_read(db_session, str(notifications_batch[0].id))
        assert Notifications.unread_count(db_session, str(user.id)) == 2
        assert Notifications.mark_all_read(db_session, str(user.id)) == 2
        assert Notifications.unread_count(db_session, str(user.id)) == 0
        assert Notifications.mark_all_read(db_session, str(user.id)) == 0

    def test_list_filter_is_read(self, db_session, user, notifications_batch):
        Notifications.mark_read(db_session, str(notifications_batch[1].id))
        assert len(Notifications.list(db_session, str(user.id))) == 3
        assert len(Notifications.list(db_session, str(user.id), is_read=False)) == 2
        assert len(Notifications.list(db_session, str(user.id), is_read=True)) == 1
        assert len(Notifications.list(db_session, str(user.id), limit=2)) == 2

    def test_unread_count_unknown_user(self, db_session):
        with pytest.raises(HTTPException) as exc:
            Notifications.unread_count(db_session, str(uuid.uuid4()))
        assert exc.value.status_code == 404


class TestNotificationsDelete:
    def test_delete(self, db_session, notifications_batch):
        target = notifications_batch[0]
        Notifications.delete(db_session, str(target.id))
        assert Notifications.get(db_session, str(target.id)) is None

    def test_delete_missing(self, db_session):
        with pytest.raises(HTTPException) as exc:
            Notifications.delete(db_session, str(uuid.uuid4()))
        assert exc.value.status_code == 404
