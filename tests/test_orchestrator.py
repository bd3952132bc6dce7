from datetime import timedelta
import json
import os
import time

from PIL import Image
import pytest

from conftest import StubExifReader
from photag.app.orchestrator import Orchestrator, PeriodicTrigger
from photag.core.errors import StoreError
from photag.core.services.reconcile_service import ReconcileService
from photag.infrastructure.json_repository import PHOTO_FILE_NAME
from photag.infrastructure.staleness_store import TIME_FILE_NAME


def _write_manifest(path, rows):
    path.write_text(json.dumps(rows), encoding="utf-8")


@pytest.fixture
def session(tmp_path, make_jpeg, clock):
    """Two originals, a manifest naming both, and an unstarted orchestrator."""
    make_jpeg("A.JPG", size=(3000, 1000))
    make_jpeg("B.JPG", size=(300, 400))
    manifest = tmp_path / "input.json"
    _write_manifest(
        manifest,
        [
            {"file_name": "A.JPG", "id": "a", "alt": "wide", "location": "X"},
            {"file_name": "B.JPG", "id": "b", "alt": "tall", "location": "Y"},
        ],
    )
    # Derivation instants must come after the originals were written.
    clock.advance(5)
    orc = Orchestrator(
        str(manifest),
        str(tmp_path / "originals"),
        str(tmp_path / "work"),
        reconciler=ReconcileService(StubExifReader()),
        clock=clock,
    )
    return orc, manifest, tmp_path / "work"


def test_periodic_trigger(clock):
    trig = PeriodicTrigger(interval=timedelta(seconds=60), last_fired=clock())
    assert not trig.due(clock.now)
    clock.advance(60)
    assert trig.due(clock.now)
    trig.fire(clock.now)
    assert not trig.due(clock.now)


def test_start_writes_derivatives_and_documents(session):
    orc, _, work = session
    result = orc.start()

    assert sorted(result.regenerated) == ["a", "b"]
    assert result.failed == []
    for pid in ("a", "b"):
        assert (work / "images" / "lazy" / f"{pid}.JPG").is_file()
        assert (work / "images" / "normal" / f"{pid}.JPG").is_file()
    assert (work / PHOTO_FILE_NAME).is_file()
    assert [row["id"] for row in json.loads((work / TIME_FILE_NAME).read_text())] == ["a", "b"]


def test_derivative_sizes(session):
    orc, _, work = session
    orc.start()
    with Image.open(work / "images" / "normal" / "a.JPG") as im:
        assert im.size == (2048, 682)
    with Image.open(work / "images" / "lazy" / "a.JPG") as im:
        assert im.size == (32, 10)
    with Image.open(work / "images" / "normal" / "b.JPG") as im:
        assert im.size == (300, 400)


def test_start_without_manifest_raises(tmp_path, clock):
    orc = Orchestrator(
        str(tmp_path / "missing.json"), str(tmp_path), str(tmp_path / "work"), clock=clock
    )
    with pytest.raises(StoreError):
        orc.start()


def test_second_start_regenerates_nothing(session, tmp_path, clock):
    orc, manifest, work = session
    orc.start()
    clock.advance(5)
    again = Orchestrator(
        str(manifest),
        str(tmp_path / "originals"),
        str(work),
        reconciler=ReconcileService(StubExifReader()),
        clock=clock,
    )
    result = again.start()
    assert result.regenerated == []
    assert result.checked == 2


def test_tick_before_interval_does_nothing(session, clock):
    orc, _, _ = session
    orc.start()
    clock.advance(59)
    report = orc.tick()
    assert not report.metadata_ran
    assert report.derivation is None


def test_metadata_tick_saves_without_reconcile_when_unchanged(session, clock):
    orc, _, _ = session
    orc.start()
    clock.advance(61)
    report = orc.tick()
    assert report.metadata_ran
    assert report.saved
    assert not report.reconciled


def test_metadata_tick_merges_changed_manifest(session, clock):
    orc, manifest, work = session
    orc.start()
    orc.catalog.photos["a"].title = "Kept title"

    _write_manifest(
        manifest,
        [
            {"file_name": "B.JPG", "id": "b", "alt": "tall, edited", "location": "Y"},
            {"file_name": "A.JPG", "id": "a", "alt": "wide", "location": "X"},
        ],
    )
    future = time.time() + 100
    os.utime(manifest, (future, future))
    clock.advance(61)
    report = orc.tick()

    assert report.reconciled and report.saved
    assert orc.catalog.photo_ids == ["b", "a"]
    assert orc.catalog.photos["b"].alt == "tall, edited"
    rows = json.loads((work / PHOTO_FILE_NAME).read_text(encoding="utf-8"))
    assert [row["photo_id"] for row in rows] == ["b", "a"]
    assert rows[1]["title"] == "Kept title"


def test_unparsable_manifest_skips_cycle(session, clock):
    orc, manifest, work = session
    orc.start()
    before = (work / PHOTO_FILE_NAME).read_text(encoding="utf-8")

    manifest.write_text("[{", encoding="utf-8")
    future = time.time() + 100
    os.utime(manifest, (future, future))
    clock.advance(61)
    report = orc.tick()

    assert report.metadata_ran
    assert not report.saved
    assert report.save_error is None
    assert manifest.read_text(encoding="utf-8") == "[{"
    assert (work / PHOTO_FILE_NAME).read_text(encoding="utf-8") == before


def test_derivative_tick_regenerates_touched_source(session, tmp_path, clock):
    orc, _, _ = session
    orc.start()
    later = time.time() + 3600
    os.utime(tmp_path / "originals" / "B.JPG", (later, later))

    clock.advance(7 * 60)
    report = orc.tick()

    assert report.derivation is not None
    assert report.derivation.regenerated == ["b"]
    assert report.derivation.checked == 2


def test_failed_derivation_stays_stale(tmp_path, make_jpeg, clock):
    make_jpeg("ok.jpg")
    bad = tmp_path / "originals" / "bad.jpg"
    bad.write_bytes(b"not a jpeg at all")
    manifest = tmp_path / "input.json"
    _write_manifest(
        manifest,
        [{"file_name": "bad.jpg", "id": "bad"}, {"file_name": "ok.jpg", "id": "ok"}],
    )
    clock.advance(5)
    orc = Orchestrator(
        str(manifest),
        str(tmp_path / "originals"),
        str(tmp_path / "work"),
        reconciler=ReconcileService(StubExifReader()),
        clock=clock,
    )

    result = orc.start()

    assert result.regenerated == ["ok"]
    assert [pid for pid, _ in result.failed] == ["bad"]
    assert "bad" not in orc.staleness
    assert not (tmp_path / "work" / "images" / "normal" / "bad.JPG").exists()

    clock.advance(7 * 60)
    report = orc.tick()
    assert [pid for pid, _ in report.derivation.failed] == ["bad"]


def test_save_error_reported_by_tick(session, clock, monkeypatch):
    orc, _, _ = session
    orc.start()

    def _fail(*_args, **_kwargs):
        raise StoreError("photo_data.json", "disk full")

    monkeypatch.setattr(orc._repo, "save", _fail)
    clock.advance(61)
    report = orc.tick()
    assert not report.saved
    assert "disk full" in report.save_error


def test_manifest_rows_without_id_survive_writeback(tmp_path, make_jpeg, clock):
    make_jpeg("a.jpg")
    manifest = tmp_path / "input.json"
    pending = {"file_name": "b.jpg", "id": "", "alt": "pending", "location": "Kyoto"}
    first = {"file_name": "a.jpg", "id": "a", "alt": "", "location": ""}
    _write_manifest(manifest, [first, pending])
    clock.advance(5)
    orc = Orchestrator(
        str(manifest),
        str(tmp_path / "originals"),
        str(tmp_path / "work"),
        reconciler=ReconcileService(StubExifReader()),
        clock=clock,
    )

    orc.start()
    rows = json.loads(manifest.read_text(encoding="utf-8"))
    assert [row["id"] for row in rows] == ["a", ""]
    assert rows[1] == pending

    clock.advance(61)
    assert orc.tick().saved
    rows = json.loads(manifest.read_text(encoding="utf-8"))
    assert rows[1] == pending
    assert orc.catalog.photo_ids == ["a"]
