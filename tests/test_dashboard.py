"""Dashboard listing and planet/image/galaxy management endpoints."""

from sqlalchemy import select

from app.core.galaxies import create_planet, ensure_galaxy
from app.db.models import Galaxy, Image, Planet
from tests.conftest import make_user, session_cookie


async def _add_image(db, user_id, galaxy=None, key="1/travel/a.png"):
    image = Image(
        user_id=user_id,
        bucket="user-images",
        object_key=key,
        content_type="image/png",
        size_bytes=10,
        checksum_sha256="0" * 64,
        galaxies=[galaxy] if galaxy is not None else [],
    )
    db.add(image)
    await db.commit()
    return image


async def _galaxy_names(session_factory):
    async with session_factory() as s:
        return sorted((await s.execute(select(Galaxy.name))).scalars().all())


async def test_dashboard_lists_galaxies_and_orphans(auth_client, test_db, user):
    galaxy = await ensure_galaxy(test_db, user.id, "Travel")
    await create_planet(test_db, user.id, "pack passport", galaxy)
    await create_planet(test_db, user.id, "book hotel", galaxy)
    await create_planet(test_db, user.id, "stray thought")
    await _add_image(test_db, user.id, galaxy)

    res = await auth_client.get("/api/dashboard")

    assert res.status_code == 200
    folders = res.json()
    assert [f["name"] for f in folders] == ["Travel", "Orphaned Planets"]

    travel, orphans = folders
    assert travel["planetCount"] == 2
    assert travel["imageCount"] == 1
    assert {p["content"] for p in travel["planets"]} == {"pack passport", "book hotel"}
    assert travel["images"][0]["objectKey"] == "1/travel/a.png"

    assert orphans["virtual"] is True
    assert orphans["id"] is None
    assert [p["content"] for p in orphans["planets"]] == ["stray thought"]


async def test_dashboard_is_scoped_to_the_caller(auth_client, test_db):
    other = await make_user(test_db, email="bob@example.com", name="Bob")
    galaxy = await ensure_galaxy(test_db, other.id, "Secret")
    await create_planet(test_db, other.id, "not yours", galaxy)

    folders = (await auth_client.get("/api/dashboard")).json()

    assert [f["name"] for f in folders] == ["Orphaned Planets"]
    assert folders[0]["planets"] == []


async def test_create_and_list_galaxies(auth_client):
    first = await auth_client.post("/api/dashboard/galaxies", json={"name": "Work"})
    again = await auth_client.post("/api/dashboard/galaxies", json={"name": "Work"})

    assert first.status_code == 200
    assert first.json()["id"] == again.json()["id"]
    listed = (await auth_client.get("/api/dashboard/galaxies")).json()
    assert [g["name"] for g in listed] == ["Work"]


async def test_reserved_galaxy_name_rejected(auth_client):
    res = await auth_client.post("/api/dashboard/galaxies", json={"name": "Orphaned Planets"})
    assert res.status_code == 400


async def test_rename_galaxy(auth_client, test_db, user):
    work = await ensure_galaxy(test_db, user.id, "Work")
    await ensure_galaxy(test_db, user.id, "Home")

    ok = await auth_client.put(f"/api/dashboard/galaxies/{work.id}", json={"name": "Career"})
    clash = await auth_client.put(f"/api/dashboard/galaxies/{work.id}", json={"name": "Home"})

    assert ok.status_code == 200
    assert ok.json()["name"] == "Career"
    assert clash.status_code == 409


async def test_delete_galaxy_keeps_planets_as_orphans(auth_client, test_db, session_factory, user):
    galaxy = await ensure_galaxy(test_db, user.id, "Work")
    await create_planet(test_db, user.id, "write report", galaxy)

    res = await auth_client.delete(f"/api/dashboard/galaxies/{galaxy.id}")

    assert res.status_code == 204
    assert await _galaxy_names(session_factory) == []
    folders = (await auth_client.get("/api/dashboard")).json()
    assert [p["content"] for p in folders[-1]["planets"]] == ["write report"]


async def test_other_users_galaxy_is_not_found(auth_client, test_db):
    other = await make_user(test_db, email="bob@example.com", name="Bob")
    galaxy = await ensure_galaxy(test_db, other.id, "Secret")

    res = await auth_client.delete(f"/api/dashboard/galaxies/{galaxy.id}")

    assert res.status_code == 404


async def test_add_and_edit_planet(auth_client):
    created = await auth_client.post(
        "/api/dashboard/planets", json={"content": " call mom ", "galaxyName": "Family"}
    )
    assert created.status_code == 201
    planet = created.json()
    assert planet["content"] == "call mom"
    assert planet["galaxy"]["name"] == "Family"

    edited = await auth_client.put(f"/api/dashboard/planets/{planet['id']}", json={"content": "call dad"})
    assert edited.status_code == 200
    assert edited.json()["content"] == "call dad"
    assert edited.json()["galaxy"]["name"] == "Family"


async def test_move_planet_by_name_removes_emptied_galaxy(auth_client, test_db, session_factory, user):
    inbox = await ensure_galaxy(test_db, user.id, "Inbox")
    planet = await create_planet(test_db, user.id, "renew passport", inbox)

    res = await auth_client.put(
        f"/api/dashboard/planets/{planet.id}/galaxy", json={"galaxyName": "Travel"}
    )

    assert res.status_code == 200
    body = res.json()
    assert body["galaxy"]["name"] == "Travel"
    assert body["removedGalaxyIds"] == [inbox.id]
    assert await _galaxy_names(session_factory) == ["Travel"]


async def test_move_planet_to_orphans(auth_client, test_db, session_factory, user):
    inbox = await ensure_galaxy(test_db, user.id, "Inbox")
    planet = await create_planet(test_db, user.id, "someday", inbox)

    res = await auth_client.put(
        f"/api/dashboard/planets/{planet.id}/galaxy", json={"galaxyName": "Orphaned Planets"}
    )

    assert res.status_code == 200
    assert res.json()["galaxy"] is None
    assert await _galaxy_names(session_factory) == []


async def test_delete_planet_removes_empty_galaxy(auth_client, test_db, session_factory, user):
    galaxy = await ensure_galaxy(test_db, user.id, "Ideas")
    planet = await create_planet(test_db, user.id, "an idea", galaxy)

    res = await auth_client.delete(f"/api/dashboard/planets/{planet.id}")

    assert res.status_code == 200
    assert res.json() == {"deleted": 1, "removedGalaxyIds": [galaxy.id]}
    assert await _galaxy_names(session_factory) == []


async def test_delete_other_users_planet_is_not_found(client, test_db, user):
    other = await make_user(test_db, email="bob@example.com", name="Bob")
    planet = await create_planet(test_db, user.id, "mine")

    res = await client.delete(f"/api/dashboard/planets/{planet.id}", headers=session_cookie(other.id))

    assert res.status_code == 404


async def test_bulk_delete_by_content(auth_client, test_db, session_factory, user):
    galaxy = await ensure_galaxy(test_db, user.id, "Groceries")
    await create_planet(test_db, user.id, "buy milk", galaxy)
    await create_planet(test_db, user.id, "buy milk", galaxy)
    await create_planet(test_db, user.id, "buy eggs", galaxy)

    res = await auth_client.request("DELETE", "/api/dashboard", json={"content": "buy milk"})

    assert res.status_code == 200
    assert res.json() == {"deleted": 2, "removedGalaxyIds": []}
    async with session_factory() as s:
        remaining = (await s.execute(select(Planet.content))).scalars().all()
    assert remaining == ["buy eggs"]


async def test_image_url_move_and_delete(auth_client, fake_storage, test_db, session_factory, user):
    galaxy = await ensure_galaxy(test_db, user.id, "Travel")
    image = await _add_image(test_db, user.id, galaxy)
    fake_storage.objects[("user-images", image.object_key)] = (b"png", "image/png")

    url = await auth_client.get(f"/api/dashboard/images/{image.id}/url")
    assert url.status_code == 200
    assert url.json()["signedUrl"] == f"https://storage.test/user-images/{image.object_key}?token=signed"

    moved = await auth_client.put(f"/api/dashboard/images/{image.id}/galaxy", json={"galaxyName": "Beach"})
    assert moved.status_code == 200
    assert moved.json()["removedGalaxyIds"] == [galaxy.id]

    deleted = await auth_client.delete(f"/api/dashboard/images/{image.id}")
    assert deleted.status_code == 200
    assert fake_storage.removed == [("user-images", image.object_key)]
    assert await _galaxy_names(session_factory) == []


async def test_dashboard_requires_session(client):
    res = await client.get("/api/dashboard")
    assert res.status_code == 401
    assert res.json() == {"detail": "Not authenticated. Please sign in."}


async def test_move_unknown_planet_creates_no_galaxy(auth_client, session_factory):
    res = await auth_client.put("/api/dashboard/planets/9999/galaxy", json={"galaxyName": "Ghost"})

    assert res.status_code == 404
    assert await _galaxy_names(session_factory) == []


async def test_move_other_users_items_creates_no_galaxy(client, test_db, session_factory, user):
    other = await make_user(test_db, email="bob@example.com", name="Bob")
    planet = await create_planet(test_db, user.id, "mine")
    image = await _add_image(test_db, user.id)

    moved_planet = await client.put(
        f"/api/dashboard/planets/{planet.id}/galaxy",
        json={"galaxyName": "Stolen"},
        headers=session_cookie(other.id),
    )
    moved_image = await client.put(
        f"/api/dashboard/images/{image.id}/galaxy",
        json={"galaxyName": "Stolen"},
        headers=session_cookie(other.id),
    )

    assert moved_planet.status_code == 404
    assert moved_image.status_code == 404
    assert await _galaxy_names(session_factory) == []


async def test_move_into_new_galaxy_returns_it(auth_client, test_db, session_factory, user):
    planet = await create_planet(test_db, user.id, "loose")

    res = await auth_client.put(f"/api/dashboard/planets/{planet.id}/galaxy", json={"galaxyName": "Fresh"})

    assert res.status_code == 200
    galaxy = res.json()["galaxy"]
    assert galaxy["name"] == "Fresh"
    assert galaxy["createdAt"] is not None
    async with session_factory() as s:
        stored = await s.get(Planet, planet.id)
        assert [g.id for g in stored.galaxies] == [galaxy["id"]]
