# tests/test_markdown_sync.py

from __future__ import annotations

import threading
from datetime import date
from pathlib import Path

import pytest

from mbot.errors import ParseError, PersistenceError
from mbot.tasks import markdown_sync
from mbot.tasks.markdown_sync import MarkdownSync, load, render
from mbot.tasks.task_models import TaskRecord
from mbot.tasks.task_store import TaskStore


def test_load_plain_checklist_scenario() -> None:
    records = load("- [ ] Buy milk\n- [x] Pay rent\n")

    assert [(r.text, r.done) for r in records] == [("Buy milk", False), ("Pay rent", True)]
    assert [r.id for r in records] == [1, 2]

    text = render(records)
    assert text == "- [ ] Buy milk <!-- id:1 -->\n- [x] Pay rent <!-- id:2 -->\n"
    assert load(text) == records


def test_load_schedule_tags() -> None:
    records = load(
        "# Schedule\n"
        "- [ ] 2024-05-01 09:00 : Standup\n"
        "- [X] 2024-05-02 : Dentist\n"
        "- [ ] 2024-05-03 7:05 : Early train\n"
    )

    standup, dentist, train = records
    assert standup.due_date == date(2024, 5, 1)
    assert standup.due_time == "09:00"
    assert standup.text == "Standup"
    assert dentist.done is True
    assert dentist.is_all_day
    assert train.due_time == "07:05"


def test_non_task_lines_are_ignored() -> None:
    text = (
        "# Tasks\n"
        "\n"
        "Some prose about the week.\n"
        "* [ ] star bullets are not tasks\n"
        "- [] missing space\n"
        "- [ ]\n"
        "- [ ] real one\n"
    )
    records = load(text)
    assert [r.text for r in records] == ["real one"]


def test_missing_ids_are_numbered_above_existing_ones() -> None:
    records = load("- [ ] a <!-- id:5 -->\n- [ ] b\n- [ ] c <!-- id:2 -->\n")
    assert [r.id for r in records] == [5, 6, 2]

    records = load("- [ ] a <!-- id:5 -->\n- [ ] b\n", id_floor=10)
    assert [r.id for r in records] == [5, 10]


@pytest.mark.parametrize(
    "line",
    [
        "- [ ] Buy milk <!-- id:",
        "- [ ] Buy milk <!-- id:abc -->",
        "- [ ] 2024-13-40 : bad date",
        "- [ ] 2024-05-01 25:00 : bad time",
        "- [ ] <!-- id:3 -->",
        "- [ ] 2024-05-01 :",
    ],
)
def test_malformed_task_lines_raise_parse_error(line: str) -> None:
    with pytest.raises(ParseError) as info:
        load("- [ ] fine\n" + line + "\n")
    assert info.value.line_no == 2


def test_duplicate_ids_raise_parse_error() -> None:
    with pytest.raises(ParseError):
        load("- [ ] a <!-- id:1 -->\n- [ ] b <!-- id:1 -->\n")


def test_round_trip_of_store_records() -> None:
    store = TaskStore()
    store.create("plain")
    tagged = store.create("timed", due_date=date(2024, 5, 1), due_time="09:00")
    store.create("all day", due_date=date(2024, 5, 2))
    store.create("has <!-- id:99 --> inside")
    store.toggle(tagged.id)
    store.delete(1)

    records = store.list()
    assert load(render(records)) == records


@pytest.mark.parametrize(
    "text",
    [
        "2024-05-01 : pay rent",
        "2024-05-01 09:00 : standup",
        "2024-13-45 : note",
        "2024-05-01 :",
        "2024-05-01 25:00 : x",
        "\\backslash first",
        "\\2024-05-01 : already escaped",
    ],
)
def test_tag_like_text_round_trips_as_text(text: str) -> None:
    store = TaskStore()
    rec = store.create(text)

    loaded = load(render(store.list()))
    assert loaded == store.list()
    assert loaded[0].text == text
    assert loaded[0].due_date is None
    assert rec.due_date is None


def test_escaped_line_written_by_hand() -> None:
    (rec,) = load("- [ ] \\2024-05-01 : literal\n")
    assert rec.text == "2024-05-01 : literal"
    assert rec.due_date is None

    # The tag itself is still read from the text after it.
    (tagged,) = load("- [ ] 2024-05-01 : \\not escaped\n")
    assert tagged.due_date == date(2024, 5, 1)
    assert tagged.text == "\\not escaped"
    assert load(render([tagged])) == [tagged]


def test_render_of_load_is_a_fixed_point() -> None:
    messy = "intro\n- [X]   2024-05-01   09:00  :  Pay rent   \n- [ ]  Buy milk\n"
    once = render(load(messy))
    assert render(load(once)) == once


def test_render_empty() -> None:
    assert render([]) == ""
    assert load("") == []


# ---- MarkdownSync ----


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def test_reload_replaces_store(tmp_path: Path) -> None:
    path = tmp_path / "schedule.md"
    _write(path, "- [ ] Buy milk\n- [x] Pay rent\n")
    store = TaskStore()
    sync = MarkdownSync(path, store)

    assert sync.reload() == 2
    assert [r.text for r in store.list()] == ["Buy milk", "Pay rent"]
    assert store.next_id == 3


def test_reload_parse_error_leaves_store_untouched(tmp_path: Path) -> None:
    path = tmp_path / "schedule.md"
    store = TaskStore()
    store.create("keep me")
    before = store.list()
    version = store.version

    _write(path, "- [ ] ok\n- [ ] 2024-99-99 : broken\n")
    sync = MarkdownSync(path, store)
    with pytest.raises(ParseError):
        sync.reload()

    assert store.list() == before
    assert store.version == version


def test_reload_never_reuses_ids_and_keeps_created_at(tmp_path: Path) -> None:
    path = tmp_path / "schedule.md"
    store = TaskStore(clock=lambda: 50.0)
    kept = store.create("kept")
    gone = store.create("gone")
    store.delete(gone.id)

    _write(path, f"- [ ] kept <!-- id:{kept.id} -->\n- [ ] new from editor\n")
    MarkdownSync(path, store).reload()

    kept_after, new = store.list()
    assert kept_after.created_at == 50.0
    assert new.id == 3


def test_create_during_reload_never_shares_an_id(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "schedule.md"
    _write(path, "- [ ] from editor\n")
    store = TaskStore()
    sync = MarkdownSync(path, store)
    held: list[TaskRecord] = []
    creators: list[threading.Thread] = []

    def load_then_create(text: str, **kwargs):
        records = load(text, **kwargs)
        # An API request arrives right after the file was parsed.
        t = threading.Thread(target=lambda: held.append(store.create("api task")))
        t.start()
        t.join(timeout=0.2)
        creators.append(t)
        return records

    monkeypatch.setattr(markdown_sync, "load", load_then_create)

    sync.reload()
    creators[0].join(timeout=5.0)

    (api_rec,) = held
    assert store.get(api_rec.id).text == "api task"
    assert sorted(r.text for r in store.list()) == ["api task", "from editor"]
    assert len({r.id for r in store.list()}) == 2


def test_reload_missing_file_writes_current_state(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "schedule.md"
    store = TaskStore()
    store.create("Buy milk")

    sync = MarkdownSync(path, store)
    assert sync.reload() == 1
    assert path.read_text("utf-8") == "- [ ] Buy milk <!-- id:1 -->\n"


def test_write_through_writes_latest_state(tmp_path: Path) -> None:
    path = tmp_path / "schedule.md"
    store = TaskStore()
    sync = MarkdownSync(path, store)
    sync.attach()

    for i in range(20):
        store.create(f"task {i}")
    store.toggle(1)
    sync.close()

    on_disk = load(path.read_text("utf-8"))
    assert on_disk == store.list()
    assert sync.last_error is None


def test_write_failure_is_reported_without_rollback(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    store = TaskStore()
    sync = MarkdownSync(blocker / "schedule.md", store)
    sync.attach()

    rec = store.create("survives")
    sync.close()

    assert store.get(rec.id).text == "survives"
    assert isinstance(sync.last_error, PersistenceError)
    with pytest.raises(PersistenceError):
        sync.flush()


def test_flush_writes_snapshot_and_remembers_own_text(tmp_path: Path) -> None:
    path = tmp_path / "schedule.md"
    store = TaskStore([TaskRecord(id=4, text="x", done=True)])
    sync = MarkdownSync(path, store)

    sync.flush()
    text = path.read_text("utf-8")
    assert text == "- [x] x <!-- id:4 -->\n"
    assert sync.is_own_text(text)
    assert not sync.is_own_text(text + "- [ ] added by hand\n")
