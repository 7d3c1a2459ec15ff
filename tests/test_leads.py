from datetime import timedelta

import pytest
from sqlalchemy import select, func

from onboarding.core.errors import InvalidTransition, TokenExpired
from onboarding.core.ids import utcnow
from onboarding.models.audit_log import AuditLog
from onboarding.schemas.lead import LeadUpdate
from onboarding.services.confirmation import confirm, decline_lead
from onboarding.services.leads import (
    create_lead,
    expire_stale_leads,
    lead_stats,
    list_leads,
    reinvite_lead,
    send_invitation,
    update_lead_profile,
)

from fixtures_seed import lead_payload


@pytest.mark.asyncio
async def test_admin_create_and_read_lead(client, admin_headers):
    r = await client.post("/v1/admin/leads", headers=admin_headers, json={
        "name": "Noa Events",
        "category": "Planner",
        "email": "noa@example.com",
        "source_type": "google",
        "tags": ["corporate"],
    })
    assert r.status_code == 201, r.text
    body = r.json()
    lead = body["lead"]
    assert lead["status"] == "pending"
    assert lead["outreach_status"] == "pending"
    assert lead["created_by"] == "adm_test"
    assert f"invite={lead['confirmation_token']}" in body["confirm_link"]

    r = await client.get(f"/v1/admin/leads/{lead['id']}", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["name"] == "Noa Events"

    r = await client.get("/v1/admin/leads/lead_missing", headers=admin_headers)
    assert r.status_code == 404
    assert r.json()["code"] == "lead_not_found"


@pytest.mark.asyncio
async def test_admin_routes_require_internal_key(client):
    r = await client.get("/v1/admin/leads")
    assert r.status_code == 403

    r = await client.get("/v1/admin/leads", headers={"X-Internal-Admin-Key": "wrong"})
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_create_rejects_missing_name(client, admin_headers):
    r = await client.post("/v1/admin/leads", headers=admin_headers, json={"category": "DJ"})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_list_filters(db_session, activity, seed_lead):
    other = await create_lead(
        db_session, activity, data=lead_payload(
            name="Avi Sound", email="avi@example.com", instagram_handle="avi.sound", source_type="manual"
        ),
        created_by="adm_test",
    )

    everything = await list_leads(db_session)
    assert {l.id for l in everything} == {seed_lead.id, other.id}

    assert [l.id for l in await list_leads(db_session, source_type="manual")] == [other.id]
    assert [l.id for l in await list_leads(db_session, search="dana")] == [seed_lead.id]
    assert [l.id for l in await list_leads(db_session, search="AVI@")] == [other.id]
    assert await list_leads(db_session, status="confirmed") == []
    assert len(await list_leads(db_session, limit=1)) == 1


@pytest.mark.asyncio
async def test_invite_then_remind(db_session, activity, seed_lead):
    first = await send_invitation(db_session, activity, lead_id=seed_lead.id, method="email", gig_id="gig_1")
    assert first.reminder is False
    assert first.lead.status == "invited"
    assert first.lead.invitation_method == "email"
    assert first.lead.invitation_sent_at is not None
    assert "gigId=gig_1" in first.link
    assert first.notification is not None
    assert first.notification.kind == "invite"
    assert first.notification.to == seed_lead.email

    second = await send_invitation(db_session, activity, lead_id=seed_lead.id, method="whatsapp")
    assert second.reminder is True
    assert second.lead.status == "invited"
    assert second.lead.reminder_count == 1
    # only email invitations are sent by us
    assert second.notification is None


@pytest.mark.asyncio
async def test_invite_terminal_or_expired_lead(db_session, activity, seed_lead, seed_expired_lead):
    await decline_lead(db_session, activity, lead_id=seed_lead.id, reason="no", actor_id="adm_test")
    with pytest.raises(InvalidTransition):
        await send_invitation(db_session, activity, lead_id=seed_lead.id, method="email")

    with pytest.raises(TokenExpired):
        await send_invitation(db_session, activity, lead_id=seed_expired_lead.id, method="email")
    await db_session.refresh(seed_expired_lead)
    assert seed_expired_lead.status == "expired"


@pytest.mark.asyncio
async def test_invite_over_http_schedules_email(client, admin_headers, notifier, seed_lead):
    r = await client.post(f"/v1/admin/leads/{seed_lead.id}/invite", headers=admin_headers, json={"method": "email"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["status"] == "invited"
    assert body["reminder"] is False
    assert [n.kind for n in notifier.sent] == ["invite"]
    assert notifier.sent[0].link == body["link"]


@pytest.mark.asyncio
async def test_reinvite_creates_fresh_lead(db_session, activity, seed_lead):
    with pytest.raises(InvalidTransition):
        await reinvite_lead(db_session, activity, lead_id=seed_lead.id)

    await decline_lead(db_session, activity, lead_id=seed_lead.id, actor_id="adm_test")
    fresh = await reinvite_lead(db_session, activity, lead_id=seed_lead.id, actor_id="adm_test")

    assert fresh.id != seed_lead.id
    assert fresh.status == "pending"
    assert fresh.reinvited_from_id == seed_lead.id
    assert fresh.confirmation_token != seed_lead.confirmation_token
    assert fresh.name == seed_lead.name
    assert fresh.portfolio_urls == seed_lead.portfolio_urls

    await db_session.refresh(seed_lead)
    assert seed_lead.status == "declined"

    result = await confirm(db_session, activity, token=fresh.confirmation_token)
    assert result.replayed is False


@pytest.mark.asyncio
async def test_reinvite_expired_lead_over_http(client, admin_headers, seed_expired_lead):
    r = await client.post(f"/v1/admin/leads/{seed_expired_lead.id}/reinvite", headers=admin_headers)
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["lead"]["reinvited_from_id"] == seed_expired_lead.id
    assert body["lead"]["status"] == "pending"


@pytest.mark.asyncio
async def test_profile_edits_freeze_after_confirmation(client, admin_headers, seed_lead):
    url = f"/v1/admin/leads/{seed_lead.id}"
    r = await client.patch(url, headers=admin_headers, json={"city": "Eilat", "name": None})
    assert r.status_code == 200, r.text
    assert r.json()["city"] == "Eilat"
    assert r.json()["name"] == "Dana Cohen Photography"

    r = await client.post(f"/v1/confirm/{seed_lead.confirmation_token}", json={})
    assert r.status_code == 200, r.text

    r = await client.patch(url, headers=admin_headers, json={"city": "Jerusalem"})
    assert r.status_code == 409
    assert r.json()["code"] == "invalid_transition"


@pytest.mark.asyncio
async def test_declined_lead_profile_is_frozen(db_session, activity, seed_lead):
    await decline_lead(db_session, activity, lead_id=seed_lead.id, actor_id="adm_test")

    with pytest.raises(InvalidTransition) as exc:
        await update_lead_profile(
            db_session, activity, lead_id=seed_lead.id, data=LeadUpdate(city="Eilat"), actor_id="adm_test"
        )
    assert "declined" in exc.value.message

    await db_session.refresh(seed_lead)
    assert seed_lead.city == "Haifa"


@pytest.mark.asyncio
async def test_admin_decline(client, admin_headers, seed_lead):
    r = await client.post(
        f"/v1/admin/leads/{seed_lead.id}/decline", headers=admin_headers, json={"reason": "duplicate"}
    )
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "declined"
    assert "duplicate" in r.json()["admin_notes"]


@pytest.mark.asyncio
async def test_outreach_status_is_independent(client, admin_headers, db_session, seed_lead):
    r = await client.put(
        f"/v1/admin/leads/{seed_lead.id}/outreach", headers=admin_headers, json={"outreach_status": "hold"}
    )
    assert r.status_code == 200, r.text
    assert r.json()["outreach_status"] == "hold"
    assert r.json()["status"] == "pending"

    r = await client.put(
        f"/v1/admin/leads/{seed_lead.id}/outreach", headers=admin_headers, json={"outreach_status": "confirmed"}
    )
    assert r.status_code == 422

    logged = (await db_session.execute(
        select(AuditLog).where(AuditLog.action == "lead_outreach_updated", AuditLog.target_id == seed_lead.id)
    )).scalars().all()
    assert len(logged) == 1
    assert logged[0].actor_id == "adm_test"
    assert logged[0].details["outreach_status"] == "hold"


@pytest.mark.asyncio
async def test_purge(client, admin_headers, db_session, seed_lead):
    r = await client.delete(f"/v1/admin/leads/{seed_lead.id}", headers=admin_headers)
    assert r.status_code == 200, r.text
    assert r.json() == {"status": "purged", "lead_id": seed_lead.id}

    r = await client.get(f"/v1/admin/leads/{seed_lead.id}", headers=admin_headers)
    assert r.status_code == 404

    purged = (await db_session.execute(
        select(func.count()).select_from(AuditLog).where(
            AuditLog.action == "lead_purged", AuditLog.target_id == seed_lead.id
        )
    )).scalar_one()
    assert purged == 1


@pytest.mark.asyncio
async def test_expiry_sweep(db_session, activity, seed_lead, seed_expired_lead):
    expired = await expire_stale_leads(db_session, activity)
    assert expired == [seed_expired_lead.id]
    assert await expire_stale_leads(db_session, activity) == []

    await db_session.refresh(seed_lead)
    assert seed_lead.status == "pending"

    # a later sweep catches the rest
    later = await expire_stale_leads(db_session, activity, now=utcnow() + timedelta(days=8))
    assert later == [seed_lead.id]


@pytest.mark.asyncio
async def test_internal_expire_endpoint(client, admin_headers, seed_expired_lead):
    r = await client.post("/v1/internal/leads/expire", headers=admin_headers)
    assert r.status_code == 200, r.text
    assert r.json() == {"expired": 1, "lead_ids": [seed_expired_lead.id]}


@pytest.mark.asyncio
async def test_stats(client, admin_headers, db_session, activity, seed_lead, seed_expired_lead):
    await confirm(db_session, activity, token=seed_lead.confirmation_token)

    stats = await lead_stats(db_session)
    assert stats["by_status"]["confirmed"] == 1
    assert stats["by_status"]["pending"] == 1
    assert stats["by_status"]["declined"] == 0
    assert stats["total"] == 2
    assert stats["confirmed_this_month"] == 1

    r = await client.get("/v1/admin/leads/stats", headers=admin_headers)
    assert r.status_code == 200, r.text
    assert r.json()["total"] == 2
