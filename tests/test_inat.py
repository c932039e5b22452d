from datetime import date

import pytest

from birdsync import inat
from birdsync.errors import RemoteError
from birdsync.inat import INatClient, Observation, ObservationFieldValue, Result


class _Resp:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload or {}
        self.text = text

    def json(self):
        return self._payload


class _Recorder:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def __call__(self, method, url, **kwargs):
        if "files" in kwargs:
            name, fh = kwargs["files"]["file"]
            kwargs["files"] = {"file": (name, fh.read())}
        self.calls.append((method, url, kwargs))
        return self.responses.pop(0)


def _client():
    return INatClient(api_token="tok", user_agent="birdsync-test", base_url="https://inat.example/v2", min_interval_s=0)


def test_download_observations_follows_pages(monkeypatch):
    rec = _Recorder(
        [
            _Resp(payload={"total_results": 2, "page": 1, "per_page": 1, "results": [{"uuid": "a", "description": "obs 1"}]}),
            _Resp(payload={"total_results": 2, "page": 2, "per_page": 1, "results": [{"uuid": "b", "description": "obs 2"}]}),
        ]
    )
    monkeypatch.setattr(inat.requests, "request", rec)

    results = _client().download_observations("someone", date(2023, 1, 1), None, "description", "ofvs.all")

    assert [r.description for r in results] == ["obs 1", "obs 2"]
    method, url, kwargs = rec.calls[0]
    assert method == "GET" and url == "https://inat.example/v2/observations"
    assert kwargs["params"]["user_id"] == "someone"
    assert kwargs["params"]["d1"] == "2023-01-01"
    assert "d2" not in kwargs["params"]
    assert kwargs["params"]["fields"] == "description,ofvs.all"
    assert kwargs["headers"]["Authorization"] == "tok"
    assert [c[2]["params"]["page"] for c in rec.calls] == ["1", "2"]


def test_download_observations_empty(monkeypatch):
    rec = _Recorder([_Resp(payload={"total_results": 0, "results": []})])
    monkeypatch.setattr(inat.requests, "request", rec)
    assert _client().download_observations("someone") == []
    assert len(rec.calls) == 1


def test_create_observation(monkeypatch):
    rec = _Recorder([_Resp()])
    monkeypatch.setattr(inat.requests, "request", rec)
    obs = Observation(
        uuid="obs-1",
        description="hi",
        latitude=1.5,
        observation_field_values_attributes=[ObservationFieldValue(inat.EBIRD_FIELD, "S1")],
    )

    _client().create_observation(obs)

    method, url, kwargs = rec.calls[0]
    assert method == "POST" and url == "https://inat.example/v2/observations"
    assert kwargs["json"] == {
        "observation": {
            "uuid": "obs-1",
            "description": "hi",
            "latitude": 1.5,
            "observation_field_values_attributes": [{"observation_field_id": inat.EBIRD_FIELD, "value": "S1"}],
        }
    }


def test_update_and_delete_paths(monkeypatch):
    rec = _Recorder([_Resp(), _Resp()])
    monkeypatch.setattr(inat.requests, "request", rec)
    client = _client()

    client.update_observation(Observation(uuid="obs-1", positional_accuracy=500))
    client.delete_observation("obs-2")

    assert rec.calls[0][0] == "PUT"
    assert rec.calls[0][1] == "https://inat.example/v2/observations/obs-1"
    assert rec.calls[0][2]["json"]["observation"] == {"uuid": "obs-1", "positional_accuracy": 500}
    assert rec.calls[1][:2] == ("DELETE", "https://inat.example/v2/observations/obs-2")


@pytest.mark.parametrize(
    "is_photo, endpoint, form_field",
    [
        (True, "/observation_photos", "observation_photo[observation_id]"),
        (False, "/observation_sounds", "observation_sound[observation_id]"),
    ],
)
def test_upload_media(monkeypatch, tmp_path, is_photo, endpoint, form_field):
    f = tmp_path / ("birdsync123.jpg" if is_photo else "birdsync123.mp3")
    f.write_bytes(b"data")
    rec = _Recorder([_Resp()])
    monkeypatch.setattr(inat.requests, "request", rec)

    _client().upload_media(str(f), is_photo, "12345", "obs-1")

    method, url, kwargs = rec.calls[0]
    assert method == "POST" and url == "https://inat.example/v2" + endpoint
    assert kwargs["files"]["file"] == ("ML12345" + f.suffix, b"data")
    assert kwargs["data"] == {form_field: "obs-1"}


def test_bad_status_raises(monkeypatch):
    monkeypatch.setattr(inat.requests, "request", _Recorder([_Resp(status_code=401, text="unauthorized")]))
    with pytest.raises(RemoteError) as exc:
        _client().create_observation(Observation(uuid="x"))
    assert exc.value.status == 401
    assert "CreateObservation failed: HTTP 401" in str(exc.value)


def test_result_from_json():
    r = Result.from_json(
        {
            "uuid": "u1",
            "observed_on": "2023-01-03",
            "description": "d",
            "taxon": {"name": "Zenaida macroura", "preferred_common_name": "Mourning Dove"},
            "ofvs": [{"field_id": inat.EBIRD_FIELD, "value": "S1"}, {"field_id": inat.COUNT_FIELD, "value": 2}],
            "photos": [{"id": 1, "url": "https://x/1.jpg", "original_filename": "ML111.jpg"}],
            "sounds": [{"id": 2, "file_url": "https://x/2.mp3", "original_filename": "ML222.mp3"}],
        }
    )
    assert r.taxon_common_name == "Mourning Dove"
    assert r.field_value(inat.EBIRD_FIELD) == "S1"
    assert r.field_value(inat.COUNT_FIELD) == "2"
    assert r.field_value(inat.EBIRD_SCIENTIFIC_NAME_FIELD) == ""
    assert r.linked_media == ("111", "222")
    assert r.sounds[0].url == "https://x/2.mp3"


def test_result_linked_media_unknown_without_filenames():
    r = Result.from_json({"uuid": "u1", "photos": [{"id": 1}, {"id": 2, "original_filename": "ML5.jpg"}]})
    assert r.linked_media is None
    assert Result.from_json({"uuid": "u1"}).linked_media is None
