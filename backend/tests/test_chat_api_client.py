"""
Tests for the chat REST client, routed into the ASGI app.
"""
import httpx
import pytest
from httpx import ASGITransport

from draftio.client.api import ChatApiClient
from draftio.client.models import AuthTokens, SessionUser
from draftio.client.storage import SessionStore
from draftio.main import app
from draftio.services.messages import MessageService

pytestmark = [pytest.mark.anyio, pytest.mark.integration]


@pytest.fixture
def api(tmp_path, token_for, override_get_db):
    session = SessionStore(directory=str(tmp_path))
    session.login(SessionUser(id="u1", username="alice"), AuthTokens(access_token=token_for("u1")))
    return ChatApiClient(session, base_url="http://test", transport=ASGITransport(app=app))


async def test_get_messages_normalizes(api, test_session):
    await MessageService(test_session).send_message("u2", "u1", "hello")
    await MessageService(test_session).send_message("u1", "u2", "hi")

    page = await api.get_messages("u2")

    assert page.total == 2
    assert page.has_more is False
    assert [(m.sender_id, m.message) for m in page.messages] == [("u2", "hello"), ("u1", "hi")]
    assert all(m.id and m.created_at for m in page.messages)


async def test_get_conversations(api, test_session):
    await MessageService(test_session).send_message("u2", "u1", "hello")

    conversations = await api.get_conversations()

    assert len(conversations) == 1
    assert conversations[0].user.id == "u2"
    assert conversations[0].last_message.message == "hello"
    assert conversations[0].unread_count == 1


async def test_unread_count_and_delete(api, test_session):
    mine = await MessageService(test_session).send_message("u1", "u2", "oops")
    await MessageService(test_session).send_message("u2", "u1", "ping")

    assert await api.get_unread_count() == 1

    await api.delete_message(str(mine.id))
    page = await api.get_messages("u2")
    assert [m.message for m in page.messages] == ["ping"]


async def test_errors_raise(api):
    with pytest.raises(httpx.HTTPStatusError):
        await api.delete_message("999")


async def test_logged_out_session_is_rejected(api):
    api.session.logout()
    with pytest.raises(httpx.HTTPStatusError):
        await api.get_unread_count()
