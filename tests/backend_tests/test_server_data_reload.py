import os

import server


def test_reload_skips_when_mtime_unchanged(monkeypatch):
    monkeypatch.setattr(server, "_data_mtime", 100.0, raising=False)
    monkeypatch.setattr(server, "_data_file_mtime", lambda _path: 100.0)

    called = {"count": 0}

    def fake_load_data(_path):
        called["count"] += 1
        return {}

    monkeypatch.setattr(server, "load_data", fake_load_data)

    changed = server._reload_data_if_changed()
    assert changed is False
    assert called["count"] == 0


def test_reload_swaps_runtime_data_when_mtime_advances(monkeypatch):
    old_data = {"catalog_codes": {"OLD1"}, "catalog": "old_catalog"}
    new_data = {"catalog_codes": {"NEW2"}, "catalog": "new_catalog"}

    monkeypatch.setattr(server, "_data", old_data, raising=False)
    monkeypatch.setattr(server, "_reverse_map", {"old": True}, raising=False)
    monkeypatch.setattr(server, "_data_mtime", 100.0, raising=False)
    monkeypatch.setattr(server, "_data_file_mtime", lambda _path: 200.0)
    monkeypatch.setattr(server, "load_data", lambda _path: new_data)
    monkeypatch.setattr(server, "build_reverse_prereq_map", lambda catalog: {catalog: True})

    changed = server._reload_data_if_changed()
    assert changed is True
    assert server._data is new_data
    assert server._reverse_map == {"new_catalog": True}
    assert server._data_mtime == 200.0


def test_reload_failure_keeps_previous_data(monkeypatch, capsys):
    old_data = {"catalog_codes": {"OLD1"}, "catalog": "old_catalog"}
    old_reverse_map = {"old": True}

    monkeypatch.setattr(server, "_data", old_data, raising=False)
    monkeypatch.setattr(server, "_reverse_map", old_reverse_map, raising=False)
    monkeypatch.setattr(server, "_data_mtime", 100.0, raising=False)
    monkeypatch.setattr(server, "_data_file_mtime", lambda _path: 200.0)

    def boom(_path):
        raise RuntimeError("reload failed")

    monkeypatch.setattr(server, "load_data", boom)

    changed = server._reload_data_if_changed()
    assert changed is False
    assert server._data is old_data
    assert server._reverse_map is old_reverse_map
    assert server._data_mtime == 100.0
    assert "[WARN] Data reload failed" in capsys.readouterr().err


def test_forced_reload_ignores_mtime(monkeypatch):
    new_data = {"catalog_codes": set(), "catalog": "forced"}
    monkeypatch.setattr(server, "_data", {"catalog_codes": set(), "catalog": "old"}, raising=False)
    monkeypatch.setattr(server, "_reverse_map", {}, raising=False)
    monkeypatch.setattr(server, "_data_mtime", 100.0, raising=False)
    monkeypatch.setattr(server, "_data_file_mtime", lambda _path: 100.0)
    monkeypatch.setattr(server, "load_data", lambda _path: new_data)
    monkeypatch.setattr(server, "build_reverse_prereq_map", lambda _catalog: {})

    assert server._reload_data_if_changed(force=True) is True
    assert server._data is new_data


def test_data_file_mtime_tracks_nested_preset_files(tmp_path):
    (tmp_path / "presets").mkdir()
    (tmp_path / "courses.json").write_text("[]")
    preset = tmp_path / "presets" / "ee1.json"
    preset.write_text("[]")
    notes = tmp_path / "notes.txt"
    notes.write_text("ignored")

    os.utime(tmp_path / "courses.json", (1000, 1000))
    os.utime(preset, (5000, 5000))
    os.utime(notes, (9000, 9000))

    assert server._data_file_mtime(str(tmp_path)) == 5000


def test_data_file_mtime_missing_path(tmp_path):
    assert server._data_file_mtime(str(tmp_path / "missing")) is None


class TestResponseCache:
    def test_lru_eviction(self):
        cache = server._LruResponseCache(2)
        cache.set("a", {"v": 1})
        cache.set("b", {"v": 2})
        assert cache.get("a") == {"v": 1}  # refreshes "a"
        cache.set("c", {"v": 3})
        assert cache.get("b") is None
        assert cache.get("a") == {"v": 1}
        assert cache.get("c") == {"v": 3}

    def test_cache_key_depends_on_data_version(self, monkeypatch):
        payload = {"schedule": {}, "major_id": "ee1"}
        monkeypatch.setattr(server, "_data_mtime", 1.0, raising=False)
        first = server._request_cache_key("evaluate", payload)
        assert server._request_cache_key("evaluate", {"major_id": "ee1", "schedule": {}}) == first
        monkeypatch.setattr(server, "_data_mtime", 2.0, raising=False)
        assert server._request_cache_key("evaluate", payload) != first

    def test_evaluate_is_memoised_outside_testing(self, monkeypatch):
        monkeypatch.setitem(server.app.config, "TESTING", False)
        server._clear_request_caches()
        calls = {"count": 0}
        real_summary = server.build_schedule_summary

        def counting_summary(*args, **kwargs):
            calls["count"] += 1
            return real_summary(*args, **kwargs)

        monkeypatch.setattr(server, "build_schedule_summary", counting_summary)
        with server.app.test_client() as client:
            first = client.post("/api/plan/evaluate", json={"major_id": "ee1"}).get_json()
            second = client.post("/api/plan/evaluate", json={"major_id": "ee1"}).get_json()
        assert first == second
        assert calls["count"] == 1
        server._clear_request_caches()
