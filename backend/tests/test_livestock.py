import asyncio
from datetime import date

import pytest
from sqlalchemy import func, select

from core.errors import AnimalNotFound, InvalidMove, LotNotFound
from core.livestock_moves import add_animal, load_lot, move_animal, remove_animal
from db.livestock import Animal, AnimalMove, LivestockLot


def _animal(identifier="BR-001", **overrides):
    data = {
        "identifier": identifier,
        "entry_date": date(2024, 3, 1),
        "weight": 320.5,
        "sex": "Macho",
        "breed": "Nelore",
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_lot(session_maker, owner):
    def _make(name="Lote A"):
        lot = LivestockLot(user_id=owner.id, name=name, animal_count=0)

        async def _insert():
            async with session_maker() as s:
                s.add(lot)
                await s.commit()
                await s.refresh(lot)

        asyncio.run(_insert())
        return lot

    return _make


def test_add_and_remove_animal_keep_count(run, owner, make_lot):
    lot = make_lot()

    async def scenario(s):
        a = await add_animal(s, owner_id=owner.id, lot_id=lot.id, data=_animal("BR-001"))
        await add_animal(s, owner_id=owner.id, lot_id=lot.id, data=_animal("BR-002", sex="Fêmea"))
        assert (await load_lot(s, owner.id, lot.id)).animal_count == 2

        await remove_animal(s, owner_id=owner.id, lot_id=lot.id, animal_id=a.id)
        assert (await load_lot(s, owner.id, lot.id)).animal_count == 1

        with pytest.raises(AnimalNotFound):
            await remove_animal(s, owner_id=owner.id, lot_id=lot.id, animal_id=a.id)
        assert (await load_lot(s, owner.id, lot.id)).animal_count == 1

    run(scenario)


def test_move_animal_updates_both_lots_and_history(run, owner, make_lot):
    src, dst = make_lot("Lote A"), make_lot("Lote B")

    async def scenario(s):
        a = await add_animal(s, owner_id=owner.id, lot_id=src.id, data=_animal())
        animal, move = await move_animal(s, owner_id=owner.id, animal_id=a.id, to_lot_id=dst.id)

        assert animal.lot_id == dst.id
        assert (move.from_lot_id, move.to_lot_id) == (src.id, dst.id)
        assert (await load_lot(s, owner.id, src.id)).animal_count == 0
        assert (await load_lot(s, owner.id, dst.id)).animal_count == 1

        res = await s.execute(select(func.count()).select_from(AnimalMove))
        assert res.scalar_one() == 1

        with pytest.raises(InvalidMove):
            await move_animal(s, owner_id=owner.id, animal_id=a.id, to_lot_id=dst.id)

    run(scenario)


def test_move_to_foreign_lot_changes_nothing(run, owner, other_user, session_maker, make_lot):
    src = make_lot()
    foreign = LivestockLot(user_id=other_user.id, name="Vizinho", animal_count=0)

    async def _insert():
        async with session_maker() as s:
            s.add(foreign)
            await s.commit()

    asyncio.run(_insert())

    async def scenario(s):
        a = await add_animal(s, owner_id=owner.id, lot_id=src.id, data=_animal())
        # the failed move rolls the session back and expires `a`
        animal_id = a.id
        with pytest.raises(LotNotFound):
            await move_animal(s, owner_id=owner.id, animal_id=animal_id, to_lot_id=foreign.id)

        fresh = await s.execute(select(Animal.lot_id).where(Animal.id == animal_id))
        assert fresh.scalar_one() == src.id
        assert (await load_lot(s, owner.id, src.id)).animal_count == 1

    run(scenario)


def test_livestock_api_flow(client):
    pasture = client.post("/livestock/pastures", json={"name": "Pasto Norte", "area_ha": 12.5}).json()
    lot_a = client.post("/livestock/lots", json={"name": "Bezerros"}).json()
    lot_b = client.post("/livestock/lots", json={"name": "Engorda"}).json()
    assert lot_a["animal_count"] == 0

    resp = client.post(
        f"/livestock/lots/{lot_a['id']}/animals",
        json={**_animal(), "entry_date": "2024-03-01"},
    )
    assert resp.status_code == 201, resp.text
    animal = resp.json()

    resp = client.post(f"/livestock/animals/{animal['id']}/move", json={"to_lot_id": lot_b["id"]})
    assert resp.status_code == 200
    assert resp.json()["animal"]["lot_id"] == lot_b["id"]

    resp = client.post(f"/livestock/animals/{animal['id']}/move", json={"to_lot_id": lot_b["id"]})
    assert resp.status_code == 400
    assert resp.json()["code"] == "InvalidMove"

    resp = client.post(f"/livestock/lots/{lot_b['id']}/relocate", json={"pasture_id": pasture["id"]})
    assert resp.status_code == 200
    assert resp.json()["pasture_name"] == "Pasto Norte"

    history = client.get(f"/livestock/lots/{lot_b['id']}/history").json()
    assert [m["direction"] for m in history["animal_moves"]] == ["in"]
    assert history["relocations"][0]["to_pasture_id"] == pasture["id"]
    assert history["relocations"][0]["from_pasture_id"] is None

    assert client.get(f"/livestock/lots/{lot_a['id']}").json()["animal_count"] == 0
    assert client.get(f"/livestock/lots/{lot_b['id']}").json()["animal_count"] == 1

    assert client.delete(f"/livestock/pastures/{pasture['id']}").status_code == 204
    assert client.get(f"/livestock/lots/{lot_b['id']}").json()["pasture_id"] is None


def test_animal_weight_must_be_positive(client):
    lot = client.post("/livestock/lots", json={"name": "Lote"}).json()
    resp = client.post(
        f"/livestock/lots/{lot['id']}/animals",
        json={**_animal(weight=0), "entry_date": "2024-03-01"},
    )
    assert resp.status_code == 422


def test_lots_are_private_to_their_owner(app_factory, owner, other_user):
    lot = app_factory(owner).post("/livestock/lots", json={"name": "Meu lote"}).json()

    intruder = app_factory(other_user)
    assert intruder.get("/livestock/lots").json() == []
    resp = intruder.get(f"/livestock/lots/{lot['id']}")
    assert resp.status_code == 404
    assert resp.json()["code"] == "LotNotFound"


def test_animal_patch_applies_create_rules(client):
    lot = client.post("/livestock/lots", json={"name": "Lote"}).json()
    animal = client.post(
        f"/livestock/lots/{lot['id']}/animals",
        json={**_animal(), "entry_date": "2024-03-01"},
    ).json()
    url = f"/livestock/lots/{lot['id']}/animals/{animal['id']}"

    assert client.patch(url, json={"weight": -50}).status_code == 422
    assert client.patch(url, json={"identifier": "  "}).status_code == 422
    assert client.patch(url, json={"breed": ""}).status_code == 422

    resp = client.patch(url, json={"weight": 410, "breed": " Angus "})
    assert resp.status_code == 200
    assert resp.json()["weight"] == 410
    assert resp.json()["breed"] == "Angus"
    assert resp.json()["identifier"] == "BR-001"
