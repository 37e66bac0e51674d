"""
Tests for conversation memory.
"""

import json
import threading
import time

import pytest

from pacebot.memory.store import MemoryStore, Turn


def fill(store: MemoryStore, conversation_id: str, count: int) -> None:
    for i in range(count):
        role = "user" if i % 2 == 0 else "assistant"
        store.append(conversation_id, role, f"message {i}")


class TestTurn:
    """Tests for Turn."""

    def test_to_dict(self):
        assert Turn("user", "hi").to_dict() == {"role": "user", "content": "hi"}

    def test_unknown_role_rejected(self):
        with pytest.raises(ValueError):
            Turn("robot", "beep")

    def test_non_string_content_rejected(self):
        with pytest.raises(TypeError):
            Turn("user", 42)

    def test_model_role_read_as_assistant(self):
        turn = Turn.from_dict({"role": "model", "content": "hello"})

        assert turn == Turn("assistant", "hello")


class TestMemoryStore:
    """Tests for bounded history."""

    def test_append_and_history(self):
        store = MemoryStore(max_turns=10)
        store.append("a@c.us", "user", "hi")
        store.append("a@c.us", "assistant", "hey")

        assert store.history("a@c.us") == [Turn("user", "hi"), Turn("assistant", "hey")]
        assert store.history("b@c.us") == []

    def test_oldest_turns_evicted(self):
        store = MemoryStore(max_turns=3)
        fill(store, "a@c.us", 5)

        contents = [t.content for t in store.history("a@c.us")]

        assert contents == ["message 2", "message 3", "message 4"]

    def test_histories_are_independent(self):
        store = MemoryStore(max_turns=2)
        fill(store, "a@c.us", 5)
        store.append("b@c.us", "user", "only one")

        assert len(store.history("a@c.us")) == 2
        assert store.history("b@c.us") == [Turn("user", "only one")]
        assert sorted(store.conversation_ids()) == ["a@c.us", "b@c.us"]

    def test_invalid_bound_rejected(self):
        with pytest.raises(ValueError):
            MemoryStore(max_turns=0)

    @pytest.mark.parametrize("n", [0, 1, 3, 6, 7, 50])
    def test_recent_window_is_history_suffix(self, n):
        store = MemoryStore(max_turns=10)
        fill(store, "a@c.us", 6)
        history = store.history("a@c.us")

        window = store.recent_window("a@c.us", n)

        assert len(window) == min(n, len(history))
        assert window == history[len(history) - len(window):]

    def test_recent_window_unknown_conversation(self):
        assert MemoryStore().recent_window("nobody", 5) == []

    def test_recent_window_does_not_mutate(self, tmp_path):
        store = MemoryStore()
        fill(store, "a@c.us", 4)
        store.flush(tmp_path / "memory.json")

        first = store.recent_window("a@c.us", 2)
        second = store.recent_window("a@c.us", 2)

        assert first == second
        assert len(store.history("a@c.us")) == 4
        assert store.is_dirty is False

    def test_clear(self):
        store = MemoryStore()
        fill(store, "a@c.us", 2)

        assert store.clear("a@c.us") is True
        assert store.clear("a@c.us") is False
        assert "a@c.us" not in store

    def test_get_stats(self):
        store = MemoryStore(max_turns=5)
        fill(store, "a@c.us", 3)
        fill(store, "b@c.us", 7)

        stats = store.get_stats()

        assert stats["conversations"] == 2
        assert stats["total_turns"] == 8
        assert stats["max_turns"] == 5


class TestMemoryPersistence:
    """Tests for dirty tracking and snapshots."""

    def test_dirty_flag_lifecycle(self, tmp_path):
        path = tmp_path / "chat_memory.json"
        store = MemoryStore()
        assert store.is_dirty is False

        store.append("a@c.us", "user", "hi")
        assert store.is_dirty is True

        assert store.flush(path) is True
        assert store.is_dirty is False
        assert store.flush(path) is False

    def test_snapshot_format(self, tmp_path):
        path = tmp_path / "chat_memory.json"
        store = MemoryStore()
        store.append("a@c.us", "user", "hi")
        store.append("a@c.us", "assistant", "hello 👋")
        store.flush(path)

        data = json.loads(path.read_text(encoding="utf-8"))

        assert data == {
            "a@c.us": [
                {"role": "user", "content": "hi"},
                {"role": "assistant", "content": "hello 👋"},
            ]
        }

    def test_round_trip(self, tmp_path):
        path = tmp_path / "chat_memory.json"
        store = MemoryStore(max_turns=4)
        fill(store, "a@c.us", 6)
        fill(store, "b@c.us", 1)
        store.flush(path)

        restored = MemoryStore(max_turns=4)
        restored.load(path)

        assert restored.history("a@c.us") == store.history("a@c.us")
        assert restored.history("b@c.us") == store.history("b@c.us")
        assert restored.is_dirty is False

    def test_load_trims_to_bound(self, tmp_path):
        path = tmp_path / "chat_memory.json"
        store = MemoryStore(max_turns=10)
        fill(store, "a@c.us", 6)
        store.flush(path)

        smaller = MemoryStore(max_turns=2)
        smaller.load(path)

        assert [t.content for t in smaller.history("a@c.us")] == ["message 4", "message 5"]

    def test_load_legacy_model_role(self, tmp_path):
        path = tmp_path / "chat_memory.json"
        path.write_text(json.dumps({
            "2348012345678@c.us": [
                {"role": "user", "content": "hi"},
                {"role": "model", "content": "hey there"},
            ]
        }), encoding="utf-8")

        store = MemoryStore()
        store.load(path)

        assert store.history("2348012345678@c.us")[1] == Turn("assistant", "hey there")

    @pytest.mark.parametrize(
        "content",
        [
            "{broken",
            '"a string"',
            json.dumps({"a@c.us": "not a list"}),
            json.dumps({"a@c.us": [{"role": "robot", "content": "x"}]}),
            json.dumps({"a@c.us": [{"role": "user"}]}),
        ],
    )
    def test_load_malformed_is_empty(self, tmp_path, content):
        path = tmp_path / "chat_memory.json"
        path.write_text(content, encoding="utf-8")

        store = MemoryStore()
        store.load(path)

        assert len(store) == 0

    def test_load_missing_is_empty(self, tmp_path):
        store = MemoryStore()
        store.load(tmp_path / "nope.json")

        assert len(store) == 0

    def test_failed_flush_keeps_dirty(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        store = MemoryStore()
        store.append("a@c.us", "user", "hi")

        assert store.flush(blocker / "chat_memory.json") is False
        assert store.is_dirty is True
        assert store.history("a@c.us") == [Turn("user", "hi")]

    def test_append_during_flush_keeps_dirty(self, tmp_path, monkeypatch):
        import pacebot.utils.snapshot as snapshot_module

        path = tmp_path / "chat_memory.json"
        store = MemoryStore()
        store.append("a@c.us", "user", "first")
        real_write = snapshot_module.write_json_snapshot

        def write_while_appending(target, data):
            store.append("a@c.us", "assistant", "raced")
            real_write(target, data)

        monkeypatch.setattr(snapshot_module, "write_json_snapshot", write_while_appending)

        assert store.flush(path) is True
        assert store.is_dirty is True

        written = json.loads(path.read_text(encoding="utf-8"))
        assert written == {"a@c.us": [{"role": "user", "content": "first"}]}

    def test_overlapping_flushes_keep_newest_snapshot(self, tmp_path, monkeypatch):
        import pacebot.utils.snapshot as snapshot_module

        path = tmp_path / "chat_memory.json"
        store = MemoryStore()
        store.append("a@c.us", "user", "first")
        entered = threading.Event()
        release = threading.Event()
        real_write = snapshot_module.write_json_snapshot
        writes = []

        def slow_first_write(target, data):
            writes.append(data)
            if len(writes) == 1:
                entered.set()
                release.wait(5)
            real_write(target, data)

        monkeypatch.setattr(snapshot_module, "write_json_snapshot", slow_first_write)

        older = threading.Thread(target=store.flush, args=(path,))
        older.start()
        assert entered.wait(5)
        store.append("a@c.us", "assistant", "second")
        newer = threading.Thread(target=store.flush, args=(path,))
        newer.start()
        time.sleep(0.05)
        release.set()
        older.join(5)
        newer.join(5)

        written = json.loads(path.read_text(encoding="utf-8"))
        assert [turn["content"] for turn in written["a@c.us"]] == ["first", "second"]
        assert store.is_dirty is False

    def test_base_class_is_abstract(self):
        from pacebot.utils.snapshot import SnapshotStore

        with pytest.raises(TypeError):
            SnapshotStore()
