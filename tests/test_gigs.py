import pytest
from sqlalchemy import select, func

from onboarding.core.errors import LinkFailure
from onboarding.models.audit_log import AuditLog
from onboarding.models.gig import Gig
from onboarding.models.vendor import Vendor
from onboarding.schemas.gig import GigDraftCreate
from onboarding.services.confirmation import complete_onboarding, confirm
from onboarding.services.gigs import create_draft_gig, ensure_can_leave_draft, link_gig
from onboarding.services.leads import create_lead

from fixtures_seed import lead_payload


@pytest.mark.asyncio
async def test_onboarding_links_draft_gig(db_session, activity, seed_lead, seed_draft_gig):
    result = await complete_onboarding(
        db_session, activity, token=seed_lead.confirmation_token, gig_id=seed_draft_gig.id
    )

    assert result.gig_linked is True
    assert result.warnings == []

    await db_session.refresh(seed_draft_gig)
    assert seed_draft_gig.vendor_id == result.confirmation.vendor_id
    assert seed_draft_gig.status == "pending_review"
    assert seed_draft_gig.moderation_status == "pending"
    assert seed_draft_gig.wizard_completed is True

    linked = (await db_session.execute(
        select(func.count()).select_from(AuditLog).where(
            AuditLog.action == "gig_linked", AuditLog.target_id == seed_draft_gig.id
        )
    )).scalar_one()
    assert linked == 1

    # replayed confirmation acknowledges the existing link
    again = await complete_onboarding(
        db_session, activity, token=seed_lead.confirmation_token, gig_id=seed_draft_gig.id
    )
    assert again.confirmation.replayed is True
    assert again.gig_linked is True
    assert again.notification is None


@pytest.mark.asyncio
async def test_link_failure_is_a_warning_and_confirmation_stands(db_session, activity, seed_lead, seed_draft_gig):
    seed_draft_gig.status = "published"
    await db_session.commit()

    result = await complete_onboarding(
        db_session, activity, token=seed_lead.confirmation_token, gig_id=seed_draft_gig.id
    )

    assert result.gig_linked is False
    assert len(result.warnings) == 1
    assert result.warnings[0]["code"] == "link_failure"

    vendor = (await db_session.execute(
        select(Vendor).where(Vendor.id == result.confirmation.vendor_id)
    )).scalar_one()
    assert vendor.source_lead_id == seed_lead.id

    await db_session.refresh(seed_lead)
    assert seed_lead.status == "confirmed"

    await db_session.refresh(seed_draft_gig)
    assert seed_draft_gig.vendor_id is None
    assert seed_draft_gig.status == "published"


@pytest.mark.asyncio
async def test_unknown_gig_is_a_warning(db_session, activity, seed_lead):
    result = await complete_onboarding(db_session, activity, token=seed_lead.confirmation_token, gig_id="gig_missing")
    assert result.gig_linked is False
    assert result.warnings[0]["code"] == "link_failure"
    assert result.notification is not None


@pytest.mark.asyncio
async def test_gig_from_another_invitation_is_not_linked(db_session, activity, seed_lead):
    gig = await create_draft_gig(
        db_session, data=GigDraftCreate(title="Other", invite_token="someone-elses-token")
    )
    result = await complete_onboarding(db_session, activity, token=seed_lead.confirmation_token, gig_id=gig.id)
    assert result.gig_linked is False

    await db_session.refresh(gig)
    assert gig.vendor_id is None
    assert gig.status == "draft_profile_missing"


@pytest.mark.asyncio
async def test_gig_owned_by_another_vendor(db_session, activity, seed_lead):
    first = await complete_onboarding(db_session, activity, token=seed_lead.confirmation_token)
    gig = await create_draft_gig(
        db_session, data=GigDraftCreate(title="Mine"), vendor_id=first.confirmation.vendor_id
    )
    assert gig.status == "draft"

    other = Vendor(name="Other", category="Other", edit_token_hash="h", edit_token_sealed="s")
    db_session.add(other)
    await db_session.commit()

    with pytest.raises(LinkFailure):
        await link_gig(db_session, activity, gig_id=gig.id, vendor_id=other.id)


def test_ownerless_gig_must_stay_in_draft():
    gig = Gig(id="gig_1", title="t", status="draft_profile_missing")
    ensure_can_leave_draft(gig, "draft")
    ensure_can_leave_draft(gig, "pending_review", vendor_id="vnd_1")
    with pytest.raises(LinkFailure):
        ensure_can_leave_draft(gig, "pending_review")


@pytest.mark.asyncio
async def test_gig_wizard_over_http(client, notifier, seed_lead):
    r = await client.post("/v1/gigs", json={
        "title": "Wedding package",
        "price_from": 2500,
        "invite_token": seed_lead.confirmation_token,
    })
    assert r.status_code == 201, r.text
    gig = r.json()
    assert gig["status"] == "draft_profile_missing"
    assert gig["vendor_id"] is None

    r = await client.post(
        f"/v1/confirm/{seed_lead.confirmation_token}",
        json={"profile": {"category": "Photographer"}, "gig_id": gig["id"]},
    )
    assert r.status_code == 200, r.text
    confirmed = r.json()
    assert confirmed["gig_linked"] is True
    assert confirmed["warnings"] == []

    r = await client.get(f"/v1/gigs/{gig['id']}")
    assert r.status_code == 200
    assert r.json()["vendor_id"] == confirmed["vendor_id"]
    assert r.json()["status"] == "pending_review"

    # a second gig created by the now-known vendor is owned immediately
    r = await client.post("/v1/gigs", json={"title": "Portraits"}, headers={"X-Edit-Token": confirmed["edit_token"]})
    assert r.status_code == 201, r.text
    assert r.json()["status"] == "draft"
    assert r.json()["vendor_id"] == confirmed["vendor_id"]

    r = await client.post(f"/v1/gigs/{gig['id']}/link")
    assert r.status_code == 401

    r = await client.post(f"/v1/gigs/{gig['id']}/link", headers={"X-Edit-Token": "bogus"})
    assert r.status_code == 404
    assert r.json()["code"] == "vendor_not_found"

    r = await client.get("/v1/gigs/gig_missing")
    assert r.status_code == 404
    assert r.json()["code"] == "gig_not_found"


async def _second_vendor(db_session, activity):
    other = await create_lead(
        db_session, activity,
        data=lead_payload(name="Avi Sound", email="avi@example.com", instagram_handle="avi.sound"),
        created_by="adm_test",
    )
    return await confirm(db_session, activity, token=other.confirmation_token)


@pytest.mark.asyncio
async def test_ownerless_gig_with_foreign_invitation_is_refused(db_session, activity, seed_lead):
    mine = await confirm(db_session, activity, token=seed_lead.confirmation_token)
    gig = await create_draft_gig(
        db_session, data=GigDraftCreate(title="Other", invite_token="someone-elses-token")
    )

    with pytest.raises(LinkFailure) as exc:
        await link_gig(db_session, activity, gig_id=gig.id, vendor_id=mine.vendor_id)
    assert "different invitation" in exc.value.message

    await db_session.refresh(gig)
    assert gig.vendor_id is None
    assert gig.status == "draft_profile_missing"


@pytest.mark.asyncio
async def test_ownerless_gig_without_invitation_is_refused(db_session, activity, seed_lead):
    mine = await confirm(db_session, activity, token=seed_lead.confirmation_token)
    gig = Gig(title="Orphan", status="draft_profile_missing")
    db_session.add(gig)
    await db_session.commit()

    with pytest.raises(LinkFailure) as exc:
        await link_gig(db_session, activity, gig_id=gig.id, vendor_id=mine.vendor_id)
    assert "not keyed to an invitation" in exc.value.message


@pytest.mark.asyncio
async def test_another_vendor_cannot_claim_invited_gig(db_session, activity, seed_lead, seed_draft_gig):
    other = await _second_vendor(db_session, activity)

    with pytest.raises(LinkFailure):
        await link_gig(db_session, activity, gig_id=seed_draft_gig.id, vendor_id=other.vendor_id)

    await db_session.refresh(seed_draft_gig)
    assert seed_draft_gig.vendor_id is None


@pytest.mark.asyncio
async def test_link_endpoint_only_serves_the_invited_vendor(client, db_session, activity, seed_lead, seed_draft_gig):
    other = await _second_vendor(db_session, activity)

    r = await client.post(f"/v1/gigs/{seed_draft_gig.id}/link", headers={"X-Edit-Token": other.edit_token})
    assert r.status_code == 409, r.text
    assert r.json()["code"] == "link_failure"

    r = await client.get(f"/v1/gigs/{seed_draft_gig.id}")
    assert r.json()["vendor_id"] is None
    assert r.json()["status"] == "draft_profile_missing"

    mine = await confirm(db_session, activity, token=seed_lead.confirmation_token)
    r = await client.post(f"/v1/gigs/{seed_draft_gig.id}/link", headers={"X-Edit-Token": mine.edit_token})
    assert r.status_code == 200, r.text
    assert r.json()["vendor_id"] == mine.vendor_id
    assert r.json()["status"] == "pending_review"


@pytest.mark.asyncio
async def test_gig_needs_an_invitation_or_an_owner(client):
    r = await client.post("/v1/gigs", json={"title": "Floating"})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_gig_moved_during_link_is_reported(
    db_session, session_factory, activity, monkeypatch, seed_lead, seed_draft_gig
):
    mine = await confirm(db_session, activity, token=seed_lead.confirmation_token)
    stale = seed_draft_gig
    await db_session.refresh(stale)
    await db_session.commit()
    gig_id = stale.id

    async with session_factory() as other:
        fresh = await other.get(Gig, gig_id)
        fresh.status = "published"
        await other.commit()

    async def _stale_gig(db, gig_id):
        return stale

    monkeypatch.setattr("onboarding.services.gigs.get_gig", _stale_gig)

    with pytest.raises(LinkFailure) as exc:
        await link_gig(db_session, activity, gig_id=gig_id, vendor_id=mine.vendor_id)
    assert "changed while linking" in exc.value.message
    assert exc.value.details == [{"gig_id": gig_id}]
