"""Tests for the shared energy deposition log."""

import random
import threading

import pytest

from DetectorLinac.core.data_models import StepRecord
from DetectorLinac.core.energy_log import EnergyDepositionLog


def _record(run_id, event_id, track_id=1, step_number=1, edep=0.5):
    return StepRecord(
        run_id=run_id,
        event_id=event_id,
        track_id=track_id,
        parent_id=0,
        particle="gamma",
        step_number=step_number,
        x=0.0,
        y=0.0,
        z=1.25,
        kinetic_energy=1.0,
        energy_deposit=edep,
        step_length=2.0,
        material="G4_WATER",
        process="compt",
    )


def _event_ids(path):
    return [tuple(int(v) for v in line.split()[:2]) for line in path.read_text().splitlines()]


def test_record_line_format():
    line = _record(0, 3, track_id=2, step_number=4).to_line()
    assert line == (
        "0 3 2 0 gamma 4 0.000000e+00 0.000000e+00 1.250000e+00 "
        "1.000000e+00 5.000000e-01 2.000000e+00 G4_WATER compt"
    )
    assert len(line.split()) == 14


def test_open_truncates_existing_file(tmp_path):
    path = tmp_path / "SteppingAction.txt"
    path.write_text("stale content from a previous process\n")
    with EnergyDepositionLog(path):
        pass
    assert path.read_text() == ""


def test_events_written_in_event_order(tmp_path):
    path = tmp_path / "SteppingAction.txt"
    with EnergyDepositionLog(path) as log:
        log.write_event(0, 2, [_record(0, 2)])
        log.write_event(0, 1, [_record(0, 1)])
        assert path.read_text() == ""
        log.write_event(0, 0, [_record(0, 0), _record(0, 0, step_number=2)])
        assert log.records_written == 4
    assert _event_ids(path) == [(0, 0), (0, 0), (0, 1), (0, 2)]


def test_empty_event_releases_later_events(tmp_path):
    path = tmp_path / "SteppingAction.txt"
    with EnergyDepositionLog(path) as log:
        log.write_event(0, 1, [_record(0, 1)])
        log.write_event(0, 0, [])
        log.flush()
        assert _event_ids(path) == [(0, 1)]


def test_new_run_restarts_event_numbering(tmp_path):
    path = tmp_path / "SteppingAction.txt"
    with EnergyDepositionLog(path) as log:
        log.write_event(0, 0, [_record(0, 0)])
        log.write_event(1, 0, [_record(1, 0)])
        log.write_event(1, 1, [_record(1, 1)])
    assert _event_ids(path) == [(0, 0), (1, 0), (1, 1)]


def test_duplicate_event_rejected(tmp_path):
    with EnergyDepositionLog(tmp_path / "log.txt") as log:
        log.write_event(0, 0, [])
        with pytest.raises(ValueError, match="already written"):
            log.write_event(0, 0, [])


def test_close_drains_held_back_events(tmp_path, caplog):
    path = tmp_path / "SteppingAction.txt"
    log = EnergyDepositionLog(path).open()
    log.write_event(0, 3, [_record(0, 3)])
    with caplog.at_level("WARNING", logger="detector_linac"):
        log.close()
    assert _event_ids(path) == [(0, 3)]
    assert "missing event 0" in caplog.text


def test_write_requires_open_log(tmp_path):
    log = EnergyDepositionLog(tmp_path / "log.txt")
    with pytest.raises(RuntimeError, match="not open"):
        log.write_event(0, 0, [])


def test_open_twice_rejected(tmp_path):
    log = EnergyDepositionLog(tmp_path / "log.txt").open()
    try:
        with pytest.raises(RuntimeError, match="already open"):
            log.open()
    finally:
        log.close()


def test_close_is_idempotent(tmp_path):
    log = EnergyDepositionLog(tmp_path / "log.txt").open()
    log.close()
    log.close()
    assert not log.is_open


def test_concurrent_writers_never_interleave(tmp_path):
    path = tmp_path / "SteppingAction.txt"
    num_events = 200
    order = list(range(num_events))
    random.Random(4).shuffle(order)
    chunks = [order[i::8] for i in range(8)]

    def writer(event_ids):
        for event_id in event_ids:
            records = [_record(0, event_id, step_number=s) for s in range(1, 4)]
            log.write_event(0, event_id, records)

    with EnergyDepositionLog(path) as log:
        threads = [threading.Thread(target=writer, args=(chunk,)) for chunk in chunks]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

    lines = path.read_text().splitlines()
    assert len(lines) == 3 * num_events
    expected = [(0, e) for e in range(num_events) for _ in range(3)]
    assert _event_ids(path) == expected
    assert [int(line.split()[5]) for line in lines[:3]] == [1, 2, 3]


def test_truncate_empties_existing_file(tmp_path):
    path = tmp_path / "SteppingAction.txt"
    path.write_text("stale\n")
    EnergyDepositionLog.truncate(path)
    assert path.read_text() == ""
    EnergyDepositionLog.truncate(tmp_path / "fresh.txt")
    assert (tmp_path / "fresh.txt").read_text() == ""
