from datetime import timedelta

import pytest
from sqlalchemy import select

from conftest import add_member, auth_headers, b64, make_store, make_user, png_upload
from storefront.models import Billing, Category, Product, Store, StoreUser
from storefront.models.base import utcnow
from storefront.models.enums import PayingPlan, PlanDuration, UserRole

pytestmark = pytest.mark.anyio


async def _paid_plan(session, store, owner, plan=PayingPlan.BASIC):
    payer = await session.scalar(
        select(StoreUser).where(StoreUser.store_id == store.id, StoreUser.user_id == owner.id)
    )
    now = utcnow()
    session.add(
        Billing(
            store_id=store.id,
            payer_id=payer.id,
            paying_plan=plan,
            plan_duration=PlanDuration.MONTHLY,
            price=plan.monthly_price,
            tax_id="12345678901",
            paid_at=now,
            expires_at=now + timedelta(days=30),
        )
    )
    await session.commit()


async def test_create_store_makes_creator_owner(client, session, fake_storage):
    owner = await make_user(session)
    resp = await client.post(
        "/api/v1/stores",
        json={"name": "Doce Lar", "slug": "doce-lar", "city": "Recife", "logo": png_upload()},
        headers=auth_headers(owner),
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["slug"] == "doce-lar"
    assert body["address"]["city"] == "Recife"
    assert body["primary_font"] == "Poppins"
    assert body["logo_url"].startswith("https://files.test/stores/logos/")
    assert len(fake_storage.objects) == 1

    membership = await session.scalar(select(StoreUser).where(StoreUser.user_id == owner.id))
    assert membership.role == UserRole.OWNER


async def test_slug_must_be_unique_even_after_delete(client, session):
    owner = await make_user(session)
    store = await make_store(session, owner, slug="taken")
    store.soft_delete()
    await session.commit()

    check = await client.get("/api/v1/stores/check-slug-availability", params={"slug": "taken"})
    assert check.json() == {"slug": "taken", "available": False}

    resp = await client.post(
        "/api/v1/stores", json={"name": "Outra", "slug": "taken"}, headers=auth_headers(owner)
    )
    assert resp.status_code == 400
    assert "already in use" in resp.json()["message"]


async def test_invalid_slug_is_rejected(client, session):
    owner = await make_user(session)
    resp = await client.post(
        "/api/v1/stores", json={"name": "X", "slug": "Not A Slug"}, headers=auth_headers(owner)
    )
    assert resp.status_code == 400
    assert resp.json()["validation_errors"][0]["field"] == "slug"


async def test_only_managers_can_update(client, session):
    owner = await make_user(session)
    employee = await make_user(session)
    outsider = await make_user(session)
    store = await make_store(session, owner)
    await add_member(session, store, employee, UserRole.EMPLOYEE)

    for user in (employee, outsider):
        resp = await client.put(
            f"/api/v1/stores/{store.id}", json={"name": "Hacked"}, headers=auth_headers(user)
        )
        assert resp.status_code == 403

    resp = await client.put(
        f"/api/v1/stores/{store.id}",
        json={"name": "Renamed", "street": "Rua A"},
        headers=auth_headers(owner),
    )
    assert resp.status_code == 200
    assert resp.json()["name"] == "Renamed"
    assert resp.json()["address"]["street"] == "Rua A"


async def test_logo_replacement_deletes_previous_object(client, session, fake_storage):
    owner = await make_user(session)
    store = await make_store(session, owner, logo_url="stores/logos/old.png")
    resp = await client.put(
        f"/api/v1/stores/{store.id}", json={"logo": png_upload()}, headers=auth_headers(owner)
    )
    assert resp.status_code == 200
    assert fake_storage.deleted == ["stores/logos/old.png"]


async def test_deleted_store_is_unreachable(client, session):
    owner = await make_user(session)
    manager = await make_user(session)
    store = await make_store(session, owner, slug="gone")
    await add_member(session, store, manager)

    assert (
        await client.delete(f"/api/v1/stores/{store.id}", headers=auth_headers(manager))
    ).status_code == 403
    assert (
        await client.delete(f"/api/v1/stores/{store.id}", headers=auth_headers(owner))
    ).status_code == 204

    assert (await client.get("/api/v1/stores/by-slug/gone")).status_code == 404
    assert (await client.get("/api/v1/stores/public/gone")).status_code == 404
    resp = await client.get(f"/api/v1/stores/{store.id}", headers=auth_headers(owner))
    assert resp.status_code == 400
    listing = await client.get(f"/api/v1/stores/user/{owner.id}", headers=auth_headers(owner))
    assert listing.json() == []


async def test_background_requires_paid_plan(client, session):
    owner = await make_user(session)
    store = await make_store(session, owner)
    payload = {"background_type": "GRID", "background_enabled": True}

    resp = await client.put(
        f"/api/v1/stores/{store.id}/background", json=payload, headers=auth_headers(owner)
    )
    assert resp.status_code == 400

    await _paid_plan(session, store, owner, PayingPlan.PRO)
    resp = await client.put(
        f"/api/v1/stores/{store.id}/background", json=payload, headers=auth_headers(owner)
    )
    assert resp.status_code == 200
    assert resp.json()["background_type"] == "GRID"
    assert resp.json()["active_plan"] == "PRO"


async def test_free_plan_cannot_change_background(client, session):
    owner = await make_user(session)
    store = await make_store(session, owner)
    await _paid_plan(session, store, owner, PayingPlan.FREE)

    resp = await client.put(
        f"/api/v1/stores/{store.id}/theme",
        json={"primary_color": "#ff0000", "background_enabled": True},
        headers=auth_headers(owner),
    )
    assert resp.status_code == 403

    resp = await client.put(
        f"/api/v1/stores/{store.id}/theme",
        json={"primary_color": "#ff0000", "banner_mobile": png_upload("m.png")},
        headers=auth_headers(owner),
    )
    assert resp.status_code == 200
    assert resp.json()["primary_color"] == "#ff0000"
    assert resp.json()["banner_mobile_url"].startswith("https://files.test/stores/banners/")


async def test_rejected_theme_update_keeps_current_images(client, session, fake_storage):
    owner = await make_user(session)
    store = await make_store(session, owner, logo_url="stores/logos/old.png")
    fake_storage.objects["stores/logos/old.png"] = b"old"

    resp = await client.put(
        f"/api/v1/stores/{store.id}/theme",
        json={
            "logo": png_upload("logo.png"),
            "banner_desktop": {"base64_image": b64(b"not an image"), "file_name": "d.png"},
        },
        headers=auth_headers(owner),
    )
    assert resp.status_code == 400
    assert fake_storage.deleted == []
    assert list(fake_storage.objects) == ["stores/logos/old.png"]
    refreshed = await session.get(Store, store.id, populate_existing=True)
    assert refreshed.logo_url == "stores/logos/old.png"


async def test_theme_update_deletes_replaced_images_after_commit(client, session, fake_storage):
    owner = await make_user(session)
    store = await make_store(session, owner, logo_url="stores/logos/old.png")
    fake_storage.objects["stores/logos/old.png"] = b"old"

    resp = await client.put(
        f"/api/v1/stores/{store.id}/theme",
        json={"logo": png_upload("logo.png"), "banner_desktop": png_upload("d.png")},
        headers=auth_headers(owner),
    )
    assert resp.status_code == 200
    assert fake_storage.deleted == ["stores/logos/old.png"]
    refreshed = await session.get(Store, store.id, populate_existing=True)
    assert refreshed.logo_url.startswith("stores/logos/")
    assert refreshed.logo_url != "stores/logos/old.png"
    assert set(fake_storage.objects) == {refreshed.logo_url, refreshed.banner_desktop_url}


async def test_public_store_groups_products(client, session):
    owner = await make_user(session)
    store = await make_store(session, owner, slug="vitrine")
    drinks = Category(name="Bebidas", store_id=store.id)
    removed = Category(name="Antiga", store_id=store.id)
    session.add_all([drinks, removed])
    await session.flush()
    removed.soft_delete()
    session.add_all(
        [
            Product(title="Suco", price=800, store_id=store.id, category_id=drinks.id, display_order=2),
            Product(title="Agua", price=300, store_id=store.id, category_id=drinks.id, display_order=1),
            Product(title="Cafe", price=500, store_id=store.id, category_id=drinks.id),
            Product(title="Oculto", price=100, store_id=store.id, category_id=drinks.id, available=False),
            Product(title="Avulso", price=900, store_id=store.id),
            Product(title="Orfao", price=700, store_id=store.id, category_id=removed.id),
        ]
    )
    await session.commit()

    resp = await client.get("/api/v1/stores/public/vitrine")
    assert resp.status_code == 200
    sections = resp.json()["categories"]
    assert [s["name"] for s in sections] == ["Bebidas", "Other"]
    assert [p["title"] for p in sections[0]["products"]] == ["Agua", "Suco", "Cafe"]
    other = sections[1]
    assert other["id"] is None
    assert other["description"] == "Products without a category"
    assert {p["title"] for p in other["products"]} == {"Avulso", "Orfao"}


async def test_public_store_omits_empty_other_section(client, session):
    owner = await make_user(session)
    await make_store(session, owner, slug="vazia")
    resp = await client.get("/api/v1/stores/public/vazia")
    assert resp.status_code == 200
    assert resp.json()["categories"] == []


async def test_membership_lifecycle(client, session):
    owner = await make_user(session)
    member = await make_user(session, name="Carla")
    store = await make_store(session, owner)
    url = f"/api/v1/stores/{store.id}/users"

    resp = await client.post(
        url, json={"user_id": str(member.id), "role": "EMPLOYEE"}, headers=auth_headers(owner)
    )
    assert resp.status_code == 201
    assert resp.json()["user_name"] == "Carla"
    assert resp.json()["store_slug"] == store.slug

    dup = await client.post(
        url, json={"user_id": str(member.id), "role": "MANAGER"}, headers=auth_headers(owner)
    )
    assert dup.status_code == 400

    assert (await client.delete(f"{url}/{member.id}", headers=auth_headers(owner))).status_code == 204
    again = await client.delete(f"{url}/{member.id}", headers=auth_headers(owner))
    assert again.status_code == 400
    assert (await client.delete(f"{url}/{owner.id}", headers=auth_headers(owner))).status_code == 400

    readd = await client.post(
        url, json={"user_id": str(member.id), "role": "MANAGER"}, headers=auth_headers(owner)
    )
    assert readd.status_code == 201
    assert readd.json()["role"] == "MANAGER"

    listing = await client.get(url, headers=auth_headers(owner))
    assert {m["user_id"] for m in listing.json()} == {str(owner.id), str(member.id)}


async def test_add_unknown_user_gives_404(client, session):
    owner = await make_user(session)
    store = await make_store(session, owner)
    resp = await client.post(
        f"/api/v1/stores/{store.id}/users",
        json={"user_id": "00000000-0000-0000-0000-000000000001", "role": "EMPLOYEE"},
        headers=auth_headers(owner),
    )
    assert resp.status_code == 404


async def test_user_store_listing_is_private(client, session):
    owner = await make_user(session)
    other = await make_user(session)
    await make_store(session, owner)
    resp = await client.get(f"/api/v1/stores/user/{owner.id}", headers=auth_headers(other))
    assert resp.status_code == 403
    resp = await client.get(f"/api/v1/stores/user/{owner.id}", headers=auth_headers(owner))
    assert len(resp.json()) == 1


async def test_store_row_keeps_slug_after_soft_delete(session):
    owner = await make_user(session)
    store = await make_store(session, owner, slug="arquivo")
    store.soft_delete()
    await session.commit()
    found = await session.scalar(select(Store).where(Store.slug == "arquivo"))
    assert found is not None and found.is_deleted
