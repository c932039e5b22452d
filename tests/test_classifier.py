from datetime import datetime

import pytest

from birdsync import inat
from birdsync.classifier import Decision, classify
from birdsync.config import SyncOptions
from birdsync.errors import MalformedRecordError
from birdsync.index import build_index
from birdsync.inat import Result

from tests.fakes import record, synced_result


def _uuid():
    return "new-uuid"


def _classify(rec, results=(), **opts):
    return classify(rec, build_index(results), SyncOptions(**opts), make_uuid=_uuid)


def test_window_lower_bound_is_inclusive():
    after = datetime(2023, 1, 1)
    assert _classify(record(date="2023-01-01"), after=after).decision is Decision.CREATE
    assert _classify(record(date="2022-12-31", time="11:59 PM"), after=after).decision is Decision.TOO_EARLY


def test_window_upper_bound_is_inclusive():
    before = datetime(2023, 1, 4, 11, 0)
    assert _classify(record(date="2023-01-04", time="11:00 AM"), before=before).decision is Decision.CREATE
    assert _classify(record(date="2023-01-04", time="11:01 AM"), before=before).decision is Decision.TOO_LATE


def test_malformed_date_raises():
    with pytest.raises(MalformedRecordError):
        _classify(record(line=9, date="yesterday"))


def test_exact_match_without_drift_is_previously_synced():
    rec = record(submission_id="S1", scientific_name="Larus delawarensis", date="2023-01-01", ml_catalog_numbers="12345")
    dest = synced_result(
        "u1", "S1", "Larus delawarensis",
        description="Macaulay Library Asset: https://macaulaylibrary.org/asset/12345\n",
        photos=(inat.Media(id=1),),
    )
    c = _classify(rec, [dest])
    assert c.decision is Decision.PREVIOUSLY_SYNCED
    assert c.match is dest
    assert c.drift == ""
    assert c.decision.is_skip


def test_exact_match_with_new_media_needs_update():
    rec = record(submission_id="S1", scientific_name="Larus delawarensis", date="2023-01-01", ml_catalog_numbers="12345 99999")
    dest = synced_result(
        "u1", "S1", "Larus delawarensis",
        description="macaulaylibrary.org/asset/12345\nmacaulaylibrary.org/asset/67890",
        photos=(inat.Media(id=1), inat.Media(id=2)),
    )
    c = _classify(rec, [dest])
    assert c.decision is Decision.NEEDS_MEDIA
    assert c.added.ids == ["99999"]
    assert "1 ML Asset IDs added to eBird: 99999" in c.drift
    assert "1 ML Asset IDs removed from eBird: 67890" in c.drift
    assert c.drift.index("added") < c.drift.index("removed")


def test_exact_match_with_only_removed_media_is_a_skip():
    rec = record(submission_id="S1", scientific_name="X", date="2023-01-01", ml_catalog_numbers="12345")
    dest = synced_result("u1", "S1", "X", description="macaulaylibrary.org/asset/12345\nmacaulaylibrary.org/asset/2")
    c = _classify(rec, [dest])
    assert c.decision is Decision.PREVIOUSLY_SYNCED
    assert c.drift


def test_fuzzy_by_common_name():
    dest = Result(uuid="dove", observed_on="2023-01-03", taxon_common_name="Mourning Dove")
    rec = record(submission_id="S9", common_name="Mourning Dove", scientific_name="Zenaida macroura", date="2023-01-03", time="02:00 PM")
    c = _classify(rec, [dest], fuzzy=True)
    assert c.decision is Decision.FUZZY_DUPLICATE
    assert c.fuzzy_hits == ["dove"]


def test_fuzzy_by_scientific_name_even_if_common_names_differ():
    dest = Result(uuid="dove", observed_on="2023-01-03", taxon_name="Zenaida macroura", taxon_common_name="Tórtola Plañidera")
    rec = record(submission_id="S9", common_name="Mourning Dove", scientific_name="Zenaida macroura", date="1/3/2023")
    assert _classify(rec, [dest], fuzzy=True).decision is Decision.FUZZY_DUPLICATE


def test_fuzzy_disabled_creates():
    dest = Result(uuid="dove", observed_on="2023-01-03", taxon_common_name="Mourning Dove")
    rec = record(submission_id="S9", common_name="Mourning Dove", scientific_name="Zenaida macroura", date="2023-01-03")
    assert _classify(rec, [dest]).decision is Decision.CREATE


def test_exact_match_wins_over_fuzzy():
    synced = synced_result("u1", "S9", "Zenaida macroura", observed_on="2023-01-03")
    manual = Result(uuid="dove", observed_on="2023-01-03", taxon_common_name="Mourning Dove")
    rec = record(submission_id="S9", common_name="Mourning Dove", scientific_name="Zenaida macroura", date="2023-01-03")
    assert _classify(rec, [synced, manual], fuzzy=True).decision is Decision.PREVIOUSLY_SYNCED


def test_unverifiable_only_when_required():
    rec = record(submission_id="S2", scientific_name="Buteo jamaicensis", date="2023-01-02")
    assert _classify(rec, verifiable=True).decision is Decision.UNVERIFIABLE
    assert _classify(rec).decision is Decision.CREATE


def test_create_carries_payload_and_assets():
    rec = record(
        submission_id="S128",
        common_name="American Crow",
        scientific_name="Corvus brachyrhynchos",
        date="2023-01-03",
        time="03:00 PM",
        latitude="42.1",
        longitude="",
        protocol="Traveling",
        ml_catalog_numbers="67890 67890 11111",
    )
    c = _classify(rec)
    assert c.decision is Decision.CREATE
    assert c.asset_ids == ["67890", "11111"]
    obs = c.observation
    assert obs.uuid == "new-uuid"
    assert obs.species_guess == "Corvus brachyrhynchos"
    assert obs.observed_on_string == "2023-01-03 03:00 PM"
    assert obs.latitude == 42.1 and obs.longitude == 0.0
    values = {v.observation_field_id: v.value for v in obs.observation_field_values_attributes}
    assert values[inat.EBIRD_FIELD] == "S128"
    assert values[inat.EBIRD_SCIENTIFIC_NAME_FIELD] == "Corvus brachyrhynchos"
    assert values[inat.COMMON_NAME_FIELD] == "American Crow"
    assert "Checklist: https://ebird.org/checklist/S128" in obs.description
