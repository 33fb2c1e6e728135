import json
from datetime import datetime

from ingenium.session.manager import Session, SessionManager


def test_get_or_create_returns_cached_instance(sessions):
    first = sessions.get_or_create("cli:direct")
    assert first.messages == []
    assert sessions.get_or_create("cli:direct") is first


def test_save_and_reload_from_disk(tmp_path):
    store = SessionManager(tmp_path / "s")
    session = store.get_or_create("telegram:42")
    session.add_message("user", "hi")
    session.add_message("assistant", "hello", tools_used=["exec"])
    store.save(session)

    reloaded = SessionManager(tmp_path / "s").get_or_create("telegram:42")
    assert [m["role"] for m in reloaded.messages] == ["user", "assistant"]
    assert reloaded.messages[1]["tools_used"] == ["exec"]


def test_file_layout(sessions):
    session = sessions.get_or_create("cli:direct")
    session.add_message("user", "héllo")
    sessions.save(session)

    path = sessions.sessions_dir / "cli_direct.jsonl"
    lines = path.read_text(encoding="utf-8").splitlines()
    meta = json.loads(lines[0])
    assert meta["_type"] == "metadata"
    assert meta["key"] == "cli:direct"
    assert "héllo" in lines[1]


def test_history_window_strips_extra_fields():
    session = Session(key="cli:direct")
    for i in range(5):
        session.add_message("user", f"m{i}", tools_used=["x"])

    history = session.get_history(max_messages=2)
    assert history == [{"role": "user", "content": "m3"}, {"role": "user", "content": "m4"}]
    assert session.get_history(0) == []

    session.clear()
    assert session.messages == []


def test_delete(sessions):
    session = sessions.get_or_create("cli:gone")
    sessions.save(session)

    assert sessions.delete("cli:gone") is True
    assert sessions.delete("cli:gone") is False
    assert sessions.get_or_create("cli:gone").messages == []


def test_list_sessions_newest_first_and_skips_garbage(sessions):
    older = sessions.get_or_create("cli:a")
    older.add_message("user", "1")
    older.updated_at = datetime(2024, 1, 1)
    sessions.save(older)
    newer = sessions.get_or_create("slack:b")
    newer.add_message("user", "2")
    sessions.save(newer)
    (sessions.sessions_dir / "broken.jsonl").write_text("{not json\n")

    keys = [s["key"] for s in sessions.list_sessions()]
    assert keys == ["slack:b", "cli:a"]


def test_corrupt_file_yields_fresh_session(sessions):
    (sessions.sessions_dir / "cli_bad.jsonl").write_text("garbage\n")
    assert sessions.get_or_create("cli:bad").messages == []


def test_default_location_under_home(isolated_home):
    store = SessionManager()
    assert store.sessions_dir == isolated_home / ".ingenium" / "sessions"
