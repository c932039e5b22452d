import json

import pytest

from birdsync import cli
from birdsync.inat import Result

from tests.fakes import FakeFetcher, FakeINat, synced_result


@pytest.fixture
def env(monkeypatch, tmp_path):
    monkeypatch.setenv("INAT_USER_ID", "someone")
    monkeypatch.setenv("INAT_API_TOKEN", "tok")
    monkeypatch.setenv("BIRDSYNC_LOGS_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("BIRDSYNC_LOG_CONSOLE", "0")
    return tmp_path


@pytest.fixture
def fake(monkeypatch):
    client = FakeINat()
    monkeypatch.setattr(cli, "INatClient", lambda **kwargs: client)
    monkeypatch.setattr(cli, "MLAssetFetcher", lambda **kwargs: FakeFetcher())
    return client


def test_missing_credentials(monkeypatch, tmp_path):
    monkeypatch.delenv("INAT_USER_ID", raising=False)
    monkeypatch.delenv("INAT_API_TOKEN", raising=False)
    monkeypatch.setenv("BIRDSYNC_LOGS_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("BIRDSYNC_LOG_CONSOLE", "0")
    assert cli.main(["dump"], repo_root=tmp_path) == 2


def test_inverted_window_exits_before_download(env, fake):
    export = env / "MyEBirdData.csv"
    export.write_text("Submission ID,Scientific Name,Date\nS1,X,2023-01-02\n", encoding="utf-8")
    rc = cli.main(["sync", str(export), "--after", "2023-02-01", "--before", "2023-01-01"], repo_root=env)
    assert rc == 2
    assert fake.download_calls == []


def test_sync_dry_run(env, fake):
    export = env / "MyEBirdData.csv"
    export.write_text(
        "Submission ID,Common Name,Scientific Name,Date,Time,ML Catalog Numbers\n"
        "S1,American Robin,Turdus migratorius,2023-01-02,08:00 AM,111\n",
        encoding="utf-8",
    )
    rc = cli.main(["sync", str(export), "--dry-run", "--verifiable"], repo_root=env)
    assert rc == 0
    assert fake.created == [] and fake.uploads == []
    log_text = (env / "logs" / "birdsync.log").read_text(encoding="utf-8")
    assert "Created 1 iNaturalist observations" in log_text
    assert "dry run" in log_text


def test_missing_export_is_a_run_error(env, fake):
    assert cli.main(["sync", str(env / "nope.csv")], repo_root=env) == 1


def test_dedupe_defaults_to_dry_run(env, fake):
    fake.results = [synced_result("a", "S1", "X"), synced_result("b", "S1", "X", created_at="2025")]
    assert cli.main(["dedupe"], repo_root=env) == 0
    assert fake.deleted == []
    assert cli.main(["dedupe", "--apply"], repo_root=env) == 0
    assert fake.deleted == ["b"]


def test_dump_prints_json(env, fake, capsys):
    fake.results = [Result(uuid="u1", description="hello")]
    assert cli.main(["dump"], repo_root=env) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["uuid"] == "u1"
    assert out["description"] == "hello"
