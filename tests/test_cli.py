import json
from datetime import date

import pytest

from fedresurs_leasing.models import ListingPage


def _run(capsys, argv):
    from fedresurs_leasing.__main__ import main

    code = main(argv)
    out = capsys.readouterr().out
    return code, json.loads(out)


@pytest.fixture(autouse=True)
def _env(monkeypatch):
    monkeypatch.setenv("FEDRESURS_FALLBACK_DATE", "2023-06-01")
    monkeypatch.setenv("FEDRESURS_MIN_INTERVAL_S", "0")


def test_cli_sync_up_to_date_makes_no_request(tmp_path, capsys):
    db = tmp_path / "cli.sqlite"
    code, payload = _run(capsys, ["--db", str(db), "sync", "--today", "2023-06-02"])

    assert code == 0
    assert payload["job"] == "sync"
    assert payload["status"] == "up_to_date"
    assert db.exists()


def test_cli_sync_uses_registry_client(tmp_path, capsys, monkeypatch):
    import fedresurs_leasing.__main__ as cli

    seen = []

    class _Client:
        def __init__(self, settings):
            self.settings = settings

        def fetch_listing(self, window, *, offset=0):
            seen.append(window.day)
            return ListingPage()

        def close(self):
            pass

    monkeypatch.setattr(cli, "RegistryClient", _Client)
    code, payload = _run(capsys, ["--db", str(tmp_path / "c.sqlite"), "sync", "--today", "2023-06-05", "--max-days", "2"])

    assert code == 0
    assert payload["days"] == ["2023-06-02", "2023-06-03"]
    assert seen == [date(2023, 6, 2), date(2023, 6, 3)]


def test_cli_failed_result_exits_2(tmp_path, capsys, monkeypatch):
    import fedresurs_leasing.__main__ as cli
    from fedresurs_leasing.errors import ListingFetchError

    class _Client:
        def __init__(self, settings):
            pass

        def fetch_listing(self, window, *, offset=0):
            raise ListingFetchError("listing returned HTTP 502", status=502)

        def close(self):
            pass

    monkeypatch.setattr(cli, "RegistryClient", _Client)
    code, payload = _run(capsys, ["--db", str(tmp_path / "c.sqlite"), "sync", "--today", "2023-06-05"])

    assert code == 2
    assert payload["ok"] is False
    assert "HTTP 502" in payload["errors"][0]


def test_cli_enrich_empty_db(tmp_path, capsys):
    code, payload = _run(capsys, ["--db", str(tmp_path / "e.sqlite"), "enrich", "--limit", "5"])

    assert code == 0
    assert payload["job"] == "enrich"
    assert payload["counts"]["candidates"] == 0


def test_cli_rejects_bad_today(tmp_path):
    from fedresurs_leasing.__main__ import main

    with pytest.raises(SystemExit):
        main(["--db", str(tmp_path / "x.sqlite"), "sync", "--today", "06/02/2023"])


def test_cli_requires_subcommand():
    from fedresurs_leasing.__main__ import main

    with pytest.raises(SystemExit):
        main([])


def test_cli_settings_flags_reach_the_client(tmp_path, capsys, monkeypatch):
    import fedresurs_leasing.__main__ as cli

    seen = []

    class _Client:
        def __init__(self, settings):
            seen.append(settings)

        def fetch_listing(self, window, *, offset=0):
            return ListingPage()

        def close(self):
            pass

    monkeypatch.setattr(cli, "RegistryClient", _Client)
    code, payload = _run(
        capsys,
        [
            "--db", str(tmp_path / "f.sqlite"),
            "--base-url", "https://mirror.test/",
            "--search-string", "лизинг",
            "--listing-limit", "250",
            "--timeout", "12.5",
            "--fallback-date", "2024-03-01",
            "--user-agent", "fls-test/1.0",
            "sync", "--today", "2024-03-10",
        ],
    )

    assert code == 0
    assert payload["days"] == ["2024-03-02"]
    s = seen[0]
    assert s.base_url == "https://mirror.test"
    assert s.search_string == "лизинг"
    assert s.listing_limit == 250
    assert s.timeout_s == 12.5
    assert s.fallback_date == date(2024, 3, 1)
    assert s.user_agent == "fls-test/1.0"


def test_cli_rejects_bad_fallback_date(tmp_path):
    from fedresurs_leasing.__main__ import main

    with pytest.raises(SystemExit):
        main(["--db", str(tmp_path / "x.sqlite"), "--fallback-date", "soon", "sync"])
