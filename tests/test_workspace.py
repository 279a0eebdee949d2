"""Tests for the Workspace store and its geocode/persistence flows."""

import asyncio

import pytest

from highlighter import commands
from highlighter.errors import NetworkError, NotFoundError
from highlighter.geocode import LookupResult
from highlighter.layers import EntityCandidate, FeatureSource, SimplificationConfig
from highlighter.persistence import MemoryStore, PersistenceSync
from highlighter.workspace import Workspace

PARIS = LookupResult(
    geometry={"type": "Point", "coordinates": [2.35, 48.85]},
    properties={"osm_type": "node", "osm_id": 17, "display_name": "Paris, France"},
)

GPX = """<?xml version="1.0"?>
<gpx version="1.1" creator="test" xmlns="http://www.topografix.com/GPX/1/1">
  <wpt lat="48.85" lon="2.35"><name>Camp</name><desc>first night</desc></wpt>
  <wpt lat="45.76" lon="4.83"><name>Lyon</name></wpt>
</gpx>
"""


class FakeGateway:
    """Gateway answering from dicts; ``gate`` holds every call until set."""

    def __init__(self, places=None, elements=None, errors=None, gate=None):
        self.places = places or {}
        self.elements = elements or {}
        self.errors = errors or {}
        self.gate = gate
        self.calls = []

    async def _wait(self):
        if self.gate is not None:
            await self.gate.wait()

    async def search(self, query, limit=10):
        return []

    async def resolve(self, query, want_polygon=True):
        self.calls.append(("resolve", query))
        await self._wait()
        if query in self.errors:
            raise self.errors[query]
        if query not in self.places:
            raise NotFoundError(f"nothing for {query}")
        return self.places[query]

    async def lookup(self, osm_type, osm_id, want_polygon=True):
        self.calls.append(("lookup", osm_type, osm_id, want_polygon))
        await self._wait()
        key = (osm_type, osm_id)
        if key in self.errors:
            raise self.errors[key]
        if key not in self.elements:
            raise NotFoundError(f"nothing for {osm_type}/{osm_id}")
        return self.elements[key]


async def _no_sleep(_seconds):
    return None


def _workspace(gateway=None, sync=None, **kwargs) -> Workspace:
    kwargs.setdefault("sleep", _no_sleep)
    ws = Workspace(sync, gateway, refetch_delay=0, **kwargs)
    ws.add_layer("Cities", "Europe", layer_id=1)
    return ws


@pytest.mark.unit
class TestStore:
    def test_subscribers_hear_changes(self):
        ws = Workspace()
        seen = []
        ws.subscribe(seen.append)
        ws.add_layer("A", layer_id=1)
        assert len(seen) == 1
        assert seen[0] is ws.state

    def test_no_op_not_published(self):
        ws = Workspace()
        seen = []
        ws.subscribe(seen.append)
        before = ws.state
        after = ws.dispatch(commands.RemoveLayer(99))
        assert after is before
        assert seen == []

    def test_unsubscribe(self):
        ws = Workspace()
        seen = []
        unsubscribe = ws.subscribe(seen.append)
        unsubscribe()
        ws.add_layer("A", layer_id=1)
        assert seen == []

    def test_add_layer_creates_group(self):
        ws = _workspace()
        assert ws.layer(1).name == "Cities"
        assert "Europe" in ws.state.tree

    def test_add_layer_generates_id(self):
        ws = Workspace()
        layer = ws.add_layer("Auto")
        assert ws.layer(layer.id) is layer


@pytest.mark.unit
class TestManualEntity:
    def test_resolved(self):
        ws = _workspace(FakeGateway(places={"Paris": PARIS}))
        entity_id = asyncio.run(ws.add_manual_entity(1, "Paris", notes="capital"))
        feature = ws.layer(1).get_feature(entity_id)
        assert feature.geometry == {"type": "Point", "coordinates": [2.35, 48.85]}
        assert feature.name == "Paris"
        assert feature.properties["notes"] == "capital"
        assert feature.properties["osm_type"] == "node"
        assert feature.properties["display_name"] == "Paris, France"
        assert feature.source == FeatureSource.MANUAL
        assert ws.warnings == []

    def test_not_found_removes_entity(self):
        ws = _workspace(FakeGateway())
        entity_id = asyncio.run(ws.add_manual_entity(1, "Atlantis"))
        assert ws.layer(1).features == ()
        assert [w.entity_id for w in ws.warnings] == [entity_id]

    def test_network_error_leaves_unresolved(self):
        ws = _workspace(FakeGateway(errors={"Paris": NetworkError("timeout")}))
        entity_id = asyncio.run(ws.add_manual_entity(1, "Paris"))
        feature = ws.layer(1).get_feature(entity_id)
        assert feature is not None
        assert not feature.is_resolved
        assert len(ws.warnings) == 1

    def test_unknown_layer(self):
        ws = _workspace(FakeGateway(places={"Paris": PARIS}))
        assert asyncio.run(ws.add_manual_entity(42, "Paris")) is None

    def test_result_for_removed_entity_dropped(self):
        gate = asyncio.Event()
        ws = _workspace(FakeGateway(places={"Paris": PARIS}, gate=gate))

        async def go():
            ws.dispatch(commands.AddEntity(1, EntityCandidate(
                source=FeatureSource.IMPORT, id="pending", name="Paris",
            )))
            task = asyncio.ensure_future(ws.resolve_entity(1, "pending", "Paris"))
            await asyncio.sleep(0)
            await ws.remove_entity(1, "pending")
            gate.set()
            return await task

        assert asyncio.run(go()) is False
        assert ws.layer(1).features == ()

    def test_remove_layer_cancels_resolution(self):
        gate = asyncio.Event()
        ws = _workspace(FakeGateway(places={"Paris": PARIS}, gate=gate))

        async def go():
            task = asyncio.ensure_future(ws.add_manual_entity(1, "Paris"))
            for _ in range(3):
                await asyncio.sleep(0)
            assert len(ws.tasks) == 1
            ws.remove_layer(1)
            return await task

        assert asyncio.run(go()) is not None
        assert ws.layer(1) is None
        assert len(ws.tasks) == 0

    def test_same_query_twice_both_resolve(self):
        gate = asyncio.Event()
        ws = _workspace(FakeGateway(places={"Paris": PARIS}, gate=gate))

        async def go():
            first = asyncio.ensure_future(ws.add_manual_entity(1, "Paris"))
            second = asyncio.ensure_future(ws.add_manual_entity(1, "Paris"))
            for _ in range(3):
                await asyncio.sleep(0)
            assert len(ws.tasks) == 2
            gate.set()
            return await first, await second

        ids = asyncio.run(go())
        assert ids[0] != ids[1]
        assert ws.layer(1).feature_ids == list(ids)
        assert all(ws.layer(1).get_feature(i).is_resolved for i in ids)
        assert ws.warnings == []


@pytest.mark.unit
class TestOsmEntity:
    def test_added(self):
        gateway = FakeGateway(elements={("node", 17): PARIS})
        ws = _workspace(gateway)
        entity_id = asyncio.run(ws.add_osm_entity(1, "node", 17, want_polygon=False))
        assert entity_id == "node/17"
        feature = ws.layer(1).get_feature("node/17")
        assert feature.name == "Paris, France"
        assert feature.source == FeatureSource.OSM
        assert gateway.calls == [("lookup", "node", 17, False)]

    def test_same_element_not_duplicated(self):
        ws = _workspace(FakeGateway(elements={("node", 17): PARIS}))
        asyncio.run(ws.add_osm_entity(1, "node", 17, name="Paris"))
        asyncio.run(ws.add_osm_entity(1, "node", 17, name="Again"))
        assert ws.layer(1).feature_ids == ["node/17"]
        assert ws.layer(1).features[0].name == "Paris"

    def test_failure_warns(self):
        ws = _workspace(FakeGateway())
        assert asyncio.run(ws.add_osm_entity(1, "way", 5)) is None
        assert ws.layer(1).features == ()
        assert len(ws.warnings) == 1


@pytest.mark.unit
class TestImportFile:
    def test_gpx(self):
        ws = _workspace()
        assert ws.import_file(1, "trip.gpx", GPX) == 2
        names = [f.name for f in ws.layer(1).features]
        assert names == ["Camp", "Lyon"]
        assert ws.layer(1).features[0].properties["notes"] == "first night"
        assert all(f.source == FeatureSource.IMPORT for f in ws.layer(1).features)

    def test_reimport_skips_duplicates(self):
        ws = _workspace()
        ws.import_file(1, "trip.gpx", GPX)
        assert ws.import_file(1, "trip.gpx", GPX) == 0
        assert len(ws.layer(1).features) == 2

    def test_unsupported_type(self):
        with pytest.raises(ValueError):
            _workspace().import_file(1, "notes.txt", "hello")


def _with_osm_feature(ws: Workspace) -> None:
    ws.dispatch(commands.AddEntity(1, EntityCandidate(
        source=FeatureSource.OSM, name="Paris", osm_type="node", osm_id=17,
        geometry={"type": "Point", "coordinates": [0.0, 0.0]},
    )))
    ws.dispatch(commands.AddEntity(1, EntityCandidate(source=FeatureSource.MANUAL, name="Pending")))


@pytest.mark.unit
class TestSimplification:
    def test_multiplier_change_refetches_osm_features(self):
        gateway = FakeGateway(elements={("node", 17): PARIS})
        ws = _workspace(gateway)
        _with_osm_feature(ws)

        async def go():
            queued = ws.set_simplification(1, SimplificationConfig(multiplier=2.0))
            report = await ws.refetch_queue.join()
            return queued, report

        queued, report = asyncio.run(go())
        assert queued == 1
        assert report.total == 1
        assert gateway.calls == [("lookup", "node", 17, False)]
        assert ws.layer(1).get_feature("node/17").geometry["coordinates"] == [2.35, 48.85]
        assert ws.layer(1).simplification.multiplier == 2.0

    def test_other_settings_do_not_refetch(self):
        gateway = FakeGateway(elements={("node", 17): PARIS})
        ws = _workspace(gateway)
        _with_osm_feature(ws)
        queued = ws.set_simplification(1, SimplificationConfig(rounding_decimals=3))
        assert queued == 0
        assert gateway.calls == []
        assert ws.layer(1).simplification.rounding_decimals == 3

    def test_refetch_failure_keeps_feature(self):
        ws = _workspace(FakeGateway(errors={("node", 17): NetworkError("down")}))
        _with_osm_feature(ws)

        async def go():
            ws.set_simplification(1, SimplificationConfig(multiplier=0.5))
            return await ws.refetch_queue.join()

        report = asyncio.run(go())
        assert len(report.failed) == 1
        assert ws.layer(1).get_feature("node/17").geometry["coordinates"] == [0.0, 0.0]
        assert len(ws.warnings) == 1


@pytest.mark.unit
class TestForceRender:
    def test_clear_then_replay(self):
        sleeps = []

        async def sleep(seconds):
            sleeps.append(seconds)

        ws = _workspace(sleep=sleep, replay_delay=5.0)
        _with_osm_feature(ws)
        before = ws.layer(1).feature_ids
        counts = []
        ws.subscribe(lambda state: counts.append(len(state.layers.get_layer(1).features)))

        assert asyncio.run(ws.force_render(1)) == 2
        assert sleeps == [5.0]
        assert counts == [0, 1, 2]
        assert ws.layer(1).feature_ids == before

    def test_empty_layer(self):
        assert asyncio.run(_workspace().force_render(1)) == 0

    def test_close_during_replay_keeps_features(self):
        primary = MemoryStore()
        ws = _workspace(
            sync=PersistenceSync(primary, sleep=_no_sleep),
            sleep=asyncio.sleep,
            replay_delay=60,
        )
        _with_osm_feature(ws)

        async def go():
            ws.spawn(ws.force_render(1))
            await asyncio.sleep(0)
            assert ws.layer(1).features == ()
            await ws.close()

        asyncio.run(go())
        assert len(ws.layer(1).features) == 2
        stored = asyncio.run(primary.get("layers"))
        assert len(stored[0]["featureCollection"]["features"]) == 2


@pytest.mark.unit
class TestPersistence:
    def test_load_publishes_without_saving(self):
        primary = MemoryStore({"layers": [{"id": 5, "name": "Stored"}]})
        sync = PersistenceSync(primary, sleep=_no_sleep)
        ws = Workspace(sync)
        seen = []
        ws.subscribe(seen.append)
        asyncio.run(ws.load())
        assert [layer.id for layer in ws.state.layers] == [5]
        assert len(seen) == 1
        assert not sync.has_pending

    def test_edits_saved_on_close(self):
        primary = MemoryStore({"layers": [{"id": 5, "name": "Stored"}]})
        ws = Workspace(PersistenceSync(primary, sleep=_no_sleep))

        async def go():
            await ws.load()
            ws.add_layer("New", layer_id=6)
            await ws.close()

        asyncio.run(go())
        assert [layer["id"] for layer in asyncio.run(primary.get("layers"))] == [5, 6]

    def test_remove_entity_saves_immediately(self):
        primary = MemoryStore()
        ws = _workspace(sync=PersistenceSync(primary, debounce=60, sleep=asyncio.sleep))
        _with_osm_feature(ws)

        async def go():
            await ws.remove_entity(1, "node/17")
            stored = await primary.get("layers")
            await ws.close()
            return stored

        stored = asyncio.run(go())
        features = stored[0]["featureCollection"]["features"]
        assert [f["properties"]["name"] for f in features] == ["Pending"]


@pytest.mark.unit
class TestTransfer:
    def test_export_import(self):
        ws = _workspace()
        _with_osm_feature(ws)
        other = Workspace()
        other.import_json(ws.export_json())
        assert other.state.layers == ws.state.layers
        assert "Europe" in other.state.tree

    def test_invalid_import_leaves_state(self):
        ws = _workspace()
        before = ws.state
        with pytest.raises(ValueError):
            ws.import_json("[1, 2")
        assert ws.state is before


@pytest.mark.unit
class TestWarnings:
    def test_dismiss(self):
        ws = Workspace()
        first = ws.warn("one")
        ws.warn("two", layer_id=1)
        assert ws.dismiss_warning(first.id)
        assert [w.message for w in ws.warnings] == ["two"]
        assert not ws.dismiss_warning(first.id)
