import pytest

from servertracker.core.config import Settings
from servertracker.core.errors import InvalidInputError
from servertracker.schemas import ServerIdentity


def make_settings(**kwargs):
    kwargs.setdefault("DATABASE_URL", None)
    return Settings(_env_file=None, **kwargs)


def test_poll_targets_are_parsed_into_identities():
    s = make_settings(POLL_TARGETS=" rust:10.0.0.5:28017, ,gmod:game.example.org:27015 ")

    assert s.poll_targets == [
        ServerIdentity(type="rust", host="10.0.0.5", port=28017),
        ServerIdentity(type="gmod", host="game.example.org", port=27015),
    ]


def test_empty_poll_targets():
    assert make_settings(POLL_TARGETS="").poll_targets == []


@pytest.mark.parametrize("raw", ["rust", "rust:10.0.0.5", "rust:10.0.0.5:abc", ":10.0.0.5:1", "rust:10.0.0.5:0"])
def test_invalid_poll_target_is_rejected(raw):
    with pytest.raises(InvalidInputError):
        make_settings(POLL_TARGETS=raw).poll_targets


def test_default_database_is_sqlite_file_in_data_dir(tmp_path):
    s = make_settings(data_dir=str(tmp_path))

    assert s.database_url == f"sqlite+aiosqlite:///{tmp_path / 'server-tracker.db'}"


def test_postgres_url_from_parts():
    s = make_settings(
        tracker_db_host="db",
        tracker_db_user="u",
        tracker_db_password="p",
        tracker_db_name="tracker",
    )

    assert s.database_url == "postgresql+asyncpg://u:p@db:5432/tracker"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("postgresql://u:p@db/x", "postgresql+asyncpg://u:p@db/x"),
        ("sqlite:///tmp/x.db", "sqlite+aiosqlite:///tmp/x.db"),
        ("sqlite+aiosqlite:///tmp/x.db", "sqlite+aiosqlite:///tmp/x.db"),
    ],
)
def test_database_url_is_rewritten_to_async_driver(raw, expected):
    assert make_settings(DATABASE_URL=raw).database_url == expected


def test_entry_point_serves_app_on_configured_address(monkeypatch):
    from servertracker import __main__ as entry
    from servertracker.core.config import settings

    calls = []
    monkeypatch.setattr(entry.uvicorn, "run", lambda app, **kw: calls.append((app, kw)))
    monkeypatch.setattr(settings, "API_HOST", "127.0.0.1")
    monkeypatch.setattr(settings, "API_PORT", 8088)
    monkeypatch.setattr(settings, "LOG_LEVEL", "WARNING")

    entry.main()

    assert calls == [("servertracker.main:app", {"host": "127.0.0.1", "port": 8088, "log_level": "warning"})]
