import uuid

import pytest

from memorial.models.message import Message, MessageStatus
from memorial.services import approvers as approver_service

API = "/api/v1"


def submission(**overrides):
    body = {
        "name": "Jane Doe",
        "content": "Rest in peace, you will be missed.",
        "captcha_token": "captcha-ok",
    }
    body.update(overrides)
    return body


async def add_approver(session_factory, email="ada@example.com", password="password-1", name="Ada"):
    async with session_factory() as session:
        return await approver_service.create_approver(session, name, email, password)


async def add_message(session_factory, token_issuer, status=MessageStatus.PENDING) -> Message:
    async with session_factory() as session:
        message = Message(
            name="Jane Doe",
            content="Rest in peace, you will be missed.",
            status=status.value,
            moderation_token=token_issuer.generate(),
        )
        session.add(message)
        await session.commit()
        await session.refresh(message)
        return message


def sign_in(client, codec, test_settings, approver_id):
    client.cookies.set(test_settings.SESSION_COOKIE_NAME, codec.issue(approver_id))


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


# ── Public board ─────────────────────────────────────────────────────────────
async def test_submit_creates_pending_message_and_notifies(client, session_factory, notifier):
    approver = await add_approver(session_factory)

    response = await client.post(f"{API}/messages", json=submission())

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "pending"
    assert "moderation_token" not in body
    [notice] = notifier.notices
    assert notice.message_id == body["id"]
    assert [r.email for r in notice.recipients] == [approver.email]
    assert f"approver={approver.id}" in notice.recipients[0].approve_url


async def test_submit_succeeds_when_notification_fails(client, notifier):
    notifier.fail = True

    response = await client.post(f"{API}/messages", json=submission())

    assert response.status_code == 201


@pytest.mark.parametrize(
    "body, code",
    [
        (submission(name=""), "name_required"),
        (submission(content="short"), "content_too_short"),
        (submission(captcha_token=""), "captcha_required"),
        (submission(image="not-a-data-uri"), "image_invalid"),
        ([1, 2, 3], "malformed"),
    ],
)
async def test_invalid_submission_is_400(client, body, code):
    response = await client.post(f"{API}/messages", json=body)

    assert response.status_code == 400
    assert response.json()["code"] == code


async def test_failed_captcha_is_400(client, captcha):
    captcha.ok = False

    response = await client.post(f"{API}/messages", json=submission())

    assert response.status_code == 400
    assert response.json()["code"] == "captcha_failed"


async def test_image_host_outage_is_503_without_detail(client, media):
    media.fail_upload = True
    image = "data:image/png;base64,iVBORw0KGgo="

    response = await client.post(f"{API}/messages", json=submission(image=image))

    assert response.status_code == 503
    assert response.json()["code"] == "dependency_failure"
    assert "detail" not in response.json()


async def test_public_list_shows_only_approved_without_tokens(client, session_factory, token_issuer):
    approved = await add_message(session_factory, token_issuer, MessageStatus.APPROVED)
    pending = await add_message(session_factory, token_issuer, MessageStatus.PENDING)
    await add_message(session_factory, token_issuer, MessageStatus.REJECTED)

    response = await client.get(f"{API}/messages")

    assert response.status_code == 200
    assert [m["id"] for m in response.json()] == [approved.id]
    assert "moderation_token" not in response.text
    assert approved.moderation_token not in response.text
    assert pending.moderation_token not in response.text


# ── Email links ──────────────────────────────────────────────────────────────
async def test_approve_link_is_idempotent(client, session_factory, token_issuer):
    message = await add_message(session_factory, token_issuer)
    approver = await add_approver(session_factory)
    params = {"id": message.id, "token": message.moderation_token, "approver": approver.id}

    first = await client.get(f"{API}/moderation/approve", params=params)
    second = await client.get(f"{API}/moderation/approve", params=params)

    assert first.status_code == 200
    assert "approved and now visible" in first.text
    assert second.status_code == 200
    assert "already been approved" in second.text

    listed = await client.get(f"{API}/messages")
    assert [m["id"] for m in listed.json()] == [message.id]


async def test_reject_link_after_approval_revokes(client, session_factory, token_issuer):
    message = await add_message(session_factory, token_issuer, MessageStatus.APPROVED)

    response = await client.get(
        f"{API}/moderation/reject", params={"id": message.id, "token": message.moderation_token}
    )

    assert response.status_code == 200
    assert (await client.get(f"{API}/messages")).json() == []


async def test_link_with_wrong_token_is_403(client, session_factory, token_issuer):
    message = await add_message(session_factory, token_issuer)

    response = await client.get(
        f"{API}/moderation/approve", params={"id": message.id, "token": token_issuer.generate()}
    )

    assert response.status_code == 403
    assert (await client.get(f"{API}/messages")).json() == []


async def test_link_for_unknown_message_is_404(client, token_issuer):
    response = await client.get(
        f"{API}/moderation/approve", params={"id": str(uuid.uuid4()), "token": token_issuer.generate()}
    )
    assert response.status_code == 404


@pytest.mark.parametrize(
    "params",
    [
        {},
        {"id": "not-a-uuid", "token": "abc"},
        {"id": str(uuid.uuid4())},
        {"id": str(uuid.uuid4()), "token": "x" * 257},
        {"id": str(uuid.uuid4()), "token": "abc", "approver": "nobody"},
    ],
)
async def test_malformed_link_is_400(client, params):
    response = await client.get(f"{API}/moderation/reject", params=params)
    assert response.status_code == 400


# ── Sessions ─────────────────────────────────────────────────────────────────
async def test_login_sets_session_cookie(client, session_factory, test_settings):
    approver = await add_approver(session_factory)

    response = await client.post(f"{API}/auth/login", json={"email": "ADA@example.com", "password": "password-1"})

    assert response.status_code == 200
    assert response.json()["id"] == approver.id
    assert "password_hash" not in response.json()
    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith(f"{test_settings.SESSION_COOKIE_NAME}=")
    assert "httponly" in set_cookie.lower()

    me = await client.get(f"{API}/auth/me")
    assert me.status_code == 200
    assert me.json()["email"] == "ada@example.com"


async def test_login_with_wrong_password_is_401(client, session_factory):
    await add_approver(session_factory)

    response = await client.post(f"{API}/auth/login", json={"email": "ada@example.com", "password": "nope-nope"})

    assert response.status_code == 401
    assert response.json()["code"] == "invalid_credentials"
    assert "set-cookie" not in response.headers


async def test_logout_clears_cookie(client, test_settings):
    response = await client.post(f"{API}/auth/logout")

    assert response.status_code == 200
    assert response.headers["set-cookie"].startswith(f"{test_settings.SESSION_COOKIE_NAME}=")
    assert "max-age=0" in response.headers["set-cookie"].lower()


async def test_admin_api_without_cookie_is_401(client):
    response = await client.get(f"{API}/admin/messages")

    assert response.status_code == 401
    assert response.json()["code"] == "not_authenticated"


async def test_admin_page_request_without_cookie_redirects(client):
    response = await client.get(f"{API}/admin/messages", headers={"Accept": "text/html"})

    assert response.status_code == 303
    assert response.headers["location"].endswith("/admin/login")


async def test_forged_session_is_401(client, session_factory, test_settings):
    approver = await add_approver(session_factory)
    client.cookies.set(test_settings.SESSION_COOKIE_NAME, f"{approver.id}.AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA")

    response = await client.get(f"{API}/admin/messages")

    assert response.status_code == 401


async def test_session_of_deactivated_approver_is_401(client, session_factory, codec, test_settings):
    approver = await add_approver(session_factory)
    async with session_factory() as session:
        await approver_service.set_active(session, approver.id, False)
    sign_in(client, codec, test_settings, approver.id)

    response = await client.get(f"{API}/admin/messages")

    assert response.status_code == 401


# ── Dashboard ────────────────────────────────────────────────────────────────
async def test_dashboard_approve_records_the_admin(client, session_factory, token_issuer, codec, test_settings):
    admin = await add_approver(session_factory)
    message = await add_message(session_factory, token_issuer)
    sign_in(client, codec, test_settings, admin.id)

    response = await client.post(f"{API}/admin/messages/{message.id}/approve")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "approved"
    assert body["outcome"] == "applied"
    assert body["approved_by_approver_id"] == admin.id

    listed = (await client.get(f"{API}/admin/messages", params={"status": "approved"})).json()
    assert [(m["id"], m["approved_by_name"]) for m in listed] == [(message.id, "Ada")]


async def test_dashboard_revoke_and_summary(client, session_factory, token_issuer, codec, test_settings):
    admin = await add_approver(session_factory)
    approved = await add_message(session_factory, token_issuer, MessageStatus.APPROVED)
    await add_message(session_factory, token_issuer)
    sign_in(client, codec, test_settings, admin.id)

    revoked = await client.post(f"{API}/admin/messages/{approved.id}/reject")
    again = await client.post(f"{API}/admin/messages/{approved.id}/reject")
    summary = (await client.get(f"{API}/admin/messages/summary")).json()

    assert revoked.json()["outcome"] == "applied"
    assert again.json()["outcome"] == "unchanged"
    assert summary == {"pending": 1, "approved": 0, "rejected": 1, "total": 2}


async def test_dashboard_delete_message(client, session_factory, token_issuer, codec, test_settings):
    admin = await add_approver(session_factory)
    message = await add_message(session_factory, token_issuer)
    sign_in(client, codec, test_settings, admin.id)

    deleted = await client.delete(f"{API}/admin/messages/{message.id}")
    missing = await client.post(f"{API}/admin/messages/{message.id}/approve")

    assert deleted.status_code == 200
    assert missing.status_code == 404
    assert missing.json()["code"] == "message_not_found"


# ── Approver management ──────────────────────────────────────────────────────
async def test_create_and_list_approvers(client, session_factory, codec, test_settings):
    admin = await add_approver(session_factory)
    sign_in(client, codec, test_settings, admin.id)

    created = await client.post(
        f"{API}/admin/approvers", json={"name": "Bob", "email": "Bob@Example.com", "password": "password-2"}
    )
    duplicate = await client.post(
        f"{API}/admin/approvers", json={"name": "Bob", "email": "bob@example.com", "password": "password-2"}
    )
    listed = await client.get(f"{API}/admin/approvers")

    assert created.status_code == 201
    assert created.json()["email"] == "bob@example.com"
    assert duplicate.status_code == 409
    assert sorted(a["email"] for a in listed.json()) == ["ada@example.com", "bob@example.com"]
    assert all("password_hash" not in a for a in listed.json())


@pytest.mark.parametrize("method, suffix", [("post", "/deactivate"), ("delete", "")])
async def test_admin_cannot_lock_themselves_out(client, session_factory, codec, test_settings, method, suffix):
    admin = await add_approver(session_factory)
    sign_in(client, codec, test_settings, admin.id)

    response = await getattr(client, method)(f"{API}/admin/approvers/{admin.id}{suffix}")

    assert response.status_code == 403
    assert response.json()["code"] == "self_lockout"
    async with session_factory() as session:
        unchanged = await approver_service.get_approver(session, admin.id)
    assert unchanged is not None
    assert unchanged.is_active is True


async def test_admin_can_manage_other_approvers(client, session_factory, codec, test_settings):
    admin = await add_approver(session_factory)
    other = await add_approver(session_factory, email="bob@example.com", name="Bob")
    sign_in(client, codec, test_settings, admin.id)

    deactivated = await client.post(f"{API}/admin/approvers/{other.id}/deactivate")
    reactivated = await client.post(f"{API}/admin/approvers/{other.id}/reactivate")
    deleted = await client.delete(f"{API}/admin/approvers/{other.id}")

    assert deactivated.json()["is_active"] is False
    assert reactivated.json()["is_active"] is True
    assert deleted.status_code == 200


async def test_admin_can_change_own_password(client, session_factory, codec, test_settings):
    admin = await add_approver(session_factory)
    sign_in(client, codec, test_settings, admin.id)

    response = await client.put(f"{API}/admin/approvers/{admin.id}/password", json={"password": "password-new"})

    assert response.status_code == 200
    client.cookies.clear()
    login = await client.post(f"{API}/auth/login", json={"email": "ada@example.com", "password": "password-new"})
    assert login.status_code == 200


# ── Bootstrap ────────────────────────────────────────────────────────────────
async def test_bootstrap_is_one_time(client, test_settings):
    body = {"secret": test_settings.BOOTSTRAP_SECRET, "name": "Ada", "email": "ada@example.com", "password": "password-1"}

    first = await client.post(f"{API}/bootstrap", json=body)
    second = await client.post(f"{API}/bootstrap", json={**body, "email": "eve@example.com"})

    assert first.status_code == 201
    assert first.json()["email"] == "ada@example.com"
    assert second.status_code == 403
    assert second.json()["code"] == "bootstrap_closed"


async def test_bootstrap_with_wrong_secret_is_403(client):
    body = {"secret": "guess", "name": "Eve", "email": "eve@example.com", "password": "password-1"}

    response = await client.post(f"{API}/bootstrap", json=body)

    assert response.status_code == 403
    assert response.json()["code"] == "bootstrap_closed"


async def test_bootstrap_disabled_without_secret(client, test_settings):
    test_settings.BOOTSTRAP_SECRET = None
    body = {"secret": "open-sesame", "name": "Ada", "email": "ada@example.com", "password": "password-1"}

    response = await client.post(f"{API}/bootstrap", json=body)

    assert response.status_code == 403
