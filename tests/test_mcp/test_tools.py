"""End-to-end tests of the diary tools through the ToolRegistry.

Handlers run against a real DiaryService over a temporary SQLite database
and an in-memory remote.
"""

from datetime import date

import pytest

from diary_sync.mcp.server import build_parser, build_registry, overrides_from_args
from diary_sync.mcp.tools import ALL_SPECS, ToolRegistry

D1 = date(2024, 5, 1)


@pytest.fixture
def registry():
    return ToolRegistry(ALL_SPECS)


@pytest.fixture
def call(registry, service):
    async def _call(name, **arguments):
        return await registry.call_tool(name, arguments, service)

    return _call


@pytest.fixture
async def pending(call, entries, remote):
    """Sync D1 into a pending episode and return its structured show output."""
    entries.put(D1, "a\nb\nc")
    remote.texts[D1] = "a\nx\nc"
    await call("diary_sync", date="2024-05-01")
    listing = await call("conflict_list")
    sync_datetime = listing.structuredContent["episodes"][0]["sync_datetime"]
    shown = await call("conflict_show", date="2024-05-01", sync_datetime=sync_datetime)
    return shown.structuredContent


def _hunk_id(episode, diff_type):
    return next(h["id"] for h in episode["hunks"] if h["diff_type"] == diff_type)


class TestEntryTools:
    async def test_put_then_get(self, call):
        put = await call("entry_put", date="2024-05-01", text="Dear diary")
        assert put.isError is False
        got = await call("entry_get", date="2024-05-01")
        assert got.structuredContent["text"] == "Dear diary"
        assert "# 2024-05-01" in got.content[0].text

    async def test_get_missing(self, call):
        result = await call("entry_get", date="2024-05-01")
        assert result.isError is True
        assert "not_found" in result.content[0].text
        assert "entry_list" in result.content[0].text

    async def test_put_requires_text(self, call):
        result = await call("entry_put", date="2024-05-01")
        assert result.isError is True
        assert "text is required" in result.content[0].text

    async def test_bad_date(self, call):
        result = await call("entry_get", date="2024-02-30")
        assert result.isError is True
        assert "invalid_request" in result.content[0].text

    async def test_search(self, call):
        await call("entry_put", date="2024-05-01", text="Lunch with Ana\nthen work")
        await call("entry_put", date="2024-06-01", text="quiet day")
        by_month = await call("entry_search", query="2024-05")
        assert [e["date"] for e in by_month.structuredContent["entries"]] == ["2024-05-01"]
        assert "2024-05-01: Lunch with Ana" in by_month.content[0].text
        by_text = await call("entry_search", query="quiet")
        assert [e["date"] for e in by_text.structuredContent["entries"]] == ["2024-06-01"]
        none = await call("entry_search", query="zebra")
        assert "No diary entries match" in none.content[0].text

    async def test_list_pages(self, call):
        for day in range(1, 6):
            await call("entry_put", date=f"2024-05-0{day}", text=str(day))
        first = await call("entry_list", start=0, limit=2)
        second = await call("entry_list", start=2, limit=2)
        assert first.structuredContent["dates"] == ["2024-05-05", "2024-05-04"]
        assert second.structuredContent["dates"] == ["2024-05-03", "2024-05-02"]

    async def test_list_bounds(self, call):
        result = await call("entry_list", limit=0)
        assert result.isError is True
        inverted = await call("entry_list", min_date="2024-06-01", max_date="2024-05-01")
        assert inverted.isError is True


class TestCacheTools:
    async def test_cache_then_merge(self, call, entries):
        cached = await call("entry_cache", text="Quick thought")
        assert cached.isError is False
        cached_at = cached.structuredContent["cached_at"]

        found = await call("entry_search", query="thought")
        assert found.structuredContent["entries"] == []
        assert [c["cached_at"] for c in found.structuredContent["cached"]] == [cached_at]
        assert "Cached notes (1):" in found.content[0].text

        merged = await call("entry_cache_merge")
        (day,) = merged.structuredContent["merged"]
        assert merged.structuredContent["kept"] == []
        assert entries.get(date.fromisoformat(day)).diary_text.endswith("Quick thought")

        again = await call("entry_cache_merge")
        assert again.content[0].text == "No cached notes to merge."

    async def test_empty_note_rejected(self, call):
        result = await call("entry_cache", text=" ")
        assert result.isError is True
        assert "invalid_request" in result.content[0].text


class TestExportTool:
    async def test_without_archive_dir(self, call):
        result = await call("diary_export")
        assert result.isError is True
        assert "DIARY_ARCHIVE_DIR" in result.content[0].text

    async def test_export(self, make_service, entries, tmp_path):
        entries.put(D1, "Dear diary")
        service = make_service(archive_dir=str(tmp_path))
        result = await ToolRegistry(ALL_SPECS).call_tool("diary_export", {}, service)
        (year,) = result.structuredContent["years"]
        assert (year["year"], year["entry_count"], year["written"]) == (2024, 1, True)
        assert (tmp_path / "diary_2024.txt").read_text(encoding="utf-8") == "Dear diary\n"


class TestSyncTool:
    async def test_bulk_sync(self, call, entries, remote):
        entries.put(D1, "mine")
        remote.texts[D1] = "theirs"
        remote.texts[date(2024, 5, 2)] = "new"
        result = await call("diary_sync")
        counts = result.structuredContent["counts"]
        assert counts["conflicted"] == 1
        assert counts["created"] == 1
        assert "Diary sync report" in result.content[0].text

    async def test_pending_conflict_is_error(self, call, pending):
        result = await call("diary_sync", date="2024-05-01")
        assert result.isError is True
        assert "Error (conflict)" in result.content[0].text

    async def test_upstream_failure(self, call, entries, remote):
        entries.put(D1, "mine")
        remote.failing.add(D1)
        result = await call("diary_sync", date="2024-05-01")
        assert result.isError is True
        assert "upstream_unavailable" in result.content[0].text


class TestConflictTools:
    async def test_show(self, pending):
        assert [h["diff_type"] for h in pending["hunks"]] == ["rem", "add"]

    async def test_toggle_and_commit(self, call, pending, entries):
        add_id = _hunk_id(pending, "add")
        toggled = await call("conflict_toggle", hunk_id=add_id, direction="add")
        assert toggled.structuredContent == {"hunk_id": add_id, "included": False}

        committed = await call(
            "conflict_commit",
            date="2024-05-01",
            sync_datetime=pending["sync_datetime"],
        )
        assert committed.structuredContent["text"] == "a\nc"
        assert entries.get(D1).diary_text == "a\nc"

        again = await call(
            "conflict_commit",
            date="2024-05-01",
            sync_datetime=pending["sync_datetime"],
        )
        assert again.isError is True
        assert "not_found" in again.content[0].text

    async def test_toggle_wrong_direction(self, call, pending):
        result = await call(
            "conflict_toggle", hunk_id=_hunk_id(pending, "add"), direction="rem"
        )
        assert result.isError is True
        assert "invalid_request" in result.content[0].text

    async def test_toggle_requires_hunk_id(self, call, pending):
        result = await call("conflict_toggle", direction="add")
        assert result.isError is True

    async def test_discard_hunk(self, call, pending):
        rem_id = _hunk_id(pending, "rem")
        result = await call("conflict_discard_hunk", hunk_id=rem_id)
        assert result.structuredContent == {"hunk_id": rem_id, "discarded": True}
        listing = await call("conflict_list", date="2024-05-01")
        assert listing.structuredContent["episodes"][0]["hunk_count"] == 1

    async def test_discard_episode(self, call, pending, entries):
        result = await call(
            "conflict_discard",
            date="2024-05-01",
            sync_datetime=pending["sync_datetime"],
        )
        assert result.structuredContent == {"date": "2024-05-01", "hunks_removed": 2}
        assert entries.get(D1).diary_text == "a\nb\nc"
        listing = await call("conflict_list")
        assert listing.content[0].text == "No pending conflict episodes."

    async def test_resolve_remote_wins(self, call, pending):
        result = await call(
            "conflict_resolve",
            date="2024-05-01",
            sync_datetime=pending["sync_datetime"],
            strategy="remote-wins",
        )
        assert result.structuredContent["text"] == "a\nx\nc"

    async def test_bad_sync_datetime(self, call, pending):
        result = await call("conflict_show", date="2024-05-01", sync_datetime="noon")
        assert result.isError is True
        assert "invalid_request" in result.content[0].text


class TestServerRegistry:
    def test_all_tools(self):
        registry = build_registry()
        names = {t.name for t in registry.list_tools()}
        assert "diary_status" in names
        assert registry.tool_count() == len(ALL_SPECS) + 1

    def test_permissions_file(self, tmp_path):
        path = tmp_path / "read-only.permissions"
        path.write_text("DIARY_VIEW\n")
        names = {t.name for t in build_registry(str(path)).list_tools()}
        assert names == {
            "diary_status",
            "entry_get",
            "entry_search",
            "entry_list",
            "conflict_list",
            "conflict_show",
        }

    async def test_status(self, service, entries, pending):
        registry = build_registry()
        result = await registry.call_tool("diary_status", {}, service)
        data = result.structuredContent
        assert data["latest_entry"] == "2024-05-01"
        assert data["conflict_dates"] == ["2024-05-01"]


class TestCommandLine:
    def test_only_given_options_become_overrides(self):
        args = build_parser().parse_args(
            ["--database", "/tmp/d.db", "--remote-dir", "/mnt/export", "--debug"]
        )
        assert overrides_from_args(args) == {
            "database_path": "/tmp/d.db",
            "remote_dir": "/mnt/export",
            "debug": True,
        }

    def test_insecure_flag(self):
        args = build_parser().parse_args(
            ["--remote-url", "https://diary.example.com", "--insecure"]
        )
        assert overrides_from_args(args) == {
            "remote_url": "https://diary.example.com",
            "insecure": True,
        }

    def test_no_options(self):
        assert overrides_from_args(build_parser().parse_args([])) == {}
