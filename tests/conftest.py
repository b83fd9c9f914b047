import os
import socket
import sys
import urllib.request
from pathlib import Path

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]
SRC = REPO_ROOT / "src"
FIXTURES = Path(__file__).resolve().parent / "fixtures"

# Prefer repo sources over any installed package.
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture(autouse=True)
def block_network(monkeypatch):
    if os.getenv("LIVE") == "1":
        return

    real_connect = socket.socket.connect

    def guarded_connect(sock, address):
        host = address[0]
        if host not in ("127.0.0.1", "localhost"):
            raise RuntimeError("Network access blocked in tests")
        return real_connect(sock, address)

    monkeypatch.setattr(socket.socket, "connect", guarded_connect)
    monkeypatch.setattr(
        urllib.request,
        "urlopen",
        lambda *args, **kwargs: (_ for _ in ()).throw(
            RuntimeError("Network access blocked in tests")
        ),
    )


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES


@pytest.fixture
def store(tmp_path):
    from fedresurs_leasing.storage import ContractStore

    s = ContractStore(str(tmp_path / "fedresurs.sqlite"))
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def settings(tmp_path):
    from datetime import date

    from fedresurs_leasing.config import Settings

    return Settings(
        db_path=str(tmp_path / "fedresurs.sqlite"),
        base_url="https://registry.test",
        min_interval_s=0.0,
        fallback_date=date(2023, 6, 1),
    )
