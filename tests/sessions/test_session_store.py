import json
import re
from datetime import timedelta

from oracle_cli.errors import InvalidTransitionError, SessionNotFoundError
from oracle_cli.sessions import MAX_STATUS_LIMIT, RunOptions, SessionRecord, SessionStatus, Usage, filter_by_range
from oracle_cli.sessions.store import create_session_id, slugify, to_iso
from tests.sessions.base import SessionStoreTestCase


class SlugTests(SessionStoreTestCase):
    def test_slugify_keeps_whole_words_within_limit(self) -> None:
        self.assertEqual("explain-the-race-condition-in", slugify("Explain the race condition in the file watcher"))

    def test_slugify_falls_back_for_symbols_only(self) -> None:
        self.assertEqual("session", slugify("!!! ???"))

    def test_session_id_is_timestamp_plus_slug(self) -> None:
        session_id = create_session_id("Hello World", self._clock())
        self.assertEqual("2025-11-20-12-00-00-hello-world", session_id)

    def test_custom_slug_overrides_prompt(self) -> None:
        session_id = create_session_id("ignored prompt", self._clock(), slug="My Review")
        self.assertTrue(session_id.endswith("-my-review"))


class SessionStoreTests(SessionStoreTestCase):
    def test_create_writes_pending_record_request_and_empty_log(self) -> None:
        record = self._create("Review this diff", files=("a.py",))

        self.assertEqual(SessionStatus.PENDING, record.status)
        self.assertRegex(record.id, r"^\d{4}-\d{2}-\d{2}-\d{2}-\d{2}-\d{2}-review-this-diff$")
        directory = self._store.session_dir(record.id)
        self.assertTrue((directory / "session.json").is_file())
        self.assertTrue((directory / "request.json").is_file())
        self.assertEqual(b"", (directory / "output.log").read_bytes())

        request = self._store.read_request(record.id)
        self.assertEqual("Review this diff", request.prompt)
        self.assertEqual(("a.py",), request.files)

    def test_read_round_trips_created_record(self) -> None:
        record = self._create(models=("gpt-5.1", "claude-sonnet-4-5"))
        self.assertEqual(record, self._store.read(record.id))

    def test_colliding_ids_get_a_suffix(self) -> None:
        first = self._create("same prompt")
        second = self._create("same prompt")
        self.assertNotEqual(first.id, second.id)
        self.assertTrue(second.id.startswith(f"{first.id}-"))

    def test_read_missing_returns_none(self) -> None:
        self.assertIsNone(self._store.read("does-not-exist"))

    def test_read_corrupt_record_returns_none(self) -> None:
        record = self._create()
        (self._store.session_dir(record.id) / "session.json").write_text("{not json", encoding="utf-8")
        self.assertIsNone(self._store.read(record.id))

    def test_read_record_with_malformed_options_returns_none(self) -> None:
        record = self._create()
        path = self._store.session_dir(record.id) / "session.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        data["options"] = "oops"
        path.write_text(json.dumps(data), encoding="utf-8")

        self.assertIsNone(self._store.read(record.id))
        self.assertEqual([], self._store.list())

    def test_update_merges_fields(self) -> None:
        record = self._create()
        self._store.update(record.id, {"pid": 4242})
        updated = self._store.update(record.id, {"detached": True})

        self.assertEqual(4242, updated.pid)
        self.assertTrue(updated.detached)
        self.assertEqual(record.prompt_preview, updated.prompt_preview)
        self.assertEqual(updated, self._store.read(record.id))

    def test_update_serialises_enums_and_value_objects(self) -> None:
        record = self._create_running()
        self._store.update(record.id, {"usage": Usage(input_tokens=3, output_tokens=4, cost_usd=0.5)})

        raw = json.loads((self._store.session_dir(record.id) / "session.json").read_text(encoding="utf-8"))
        self.assertEqual("running", raw["status"])
        self.assertEqual({"input_tokens": 3, "output_tokens": 4, "cost_usd": 0.5}, raw["usage"])

    def test_update_missing_session_raises(self) -> None:
        with self.assertRaises(SessionNotFoundError):
            self._store.update("nope", {"pid": 1})

    def test_transition_sets_timestamps(self) -> None:
        record = self._create()
        running = self._store.transition(record.id, SessionStatus.RUNNING)
        self.assertIsNotNone(running.started_at)
        self.assertIsNone(running.completed_at)

        self._clock.now += timedelta(seconds=5)
        completed = self._store.transition(record.id, SessionStatus.COMPLETED)
        self.assertEqual(SessionStatus.COMPLETED, completed.status)
        self.assertIsNotNone(completed.completed_at)
        self.assertLess(completed.started_at, completed.completed_at)

    def test_pending_can_fail_directly(self) -> None:
        record = self._create()
        failed = self._store.transition(record.id, SessionStatus.ERROR, error_message="boom")
        self.assertEqual("boom", failed.error_message)

    def test_terminal_status_cannot_be_left(self) -> None:
        record = self._create_running()
        self._store.transition(record.id, SessionStatus.COMPLETED)
        with self.assertRaises(InvalidTransitionError):
            self._store.transition(record.id, SessionStatus.RUNNING)

    def test_pending_cannot_complete_without_running(self) -> None:
        record = self._create()
        with self.assertRaises(InvalidTransitionError):
            self._store.transition(record.id, SessionStatus.COMPLETED)

    def test_list_is_newest_first_and_skips_corrupt_entries(self) -> None:
        oldest = self._create("first")
        self._clock.now += timedelta(minutes=1)
        middle = self._create("second")
        self._clock.now += timedelta(minutes=1)
        newest = self._create("third")
        (self._store.root / "garbage").mkdir()

        ids = [record.id for record in self._store.list()]
        self.assertEqual([newest.id, middle.id, oldest.id], ids)

    def test_list_on_empty_home_creates_storage(self) -> None:
        self.assertEqual([], self._store.list())
        self.assertTrue(self._store.root.is_dir())


class FilterByRangeTests(SessionStoreTestCase):
    def _populate(self, ages_in_hours: list[float]) -> None:
        now = self._clock.now
        for index, age in enumerate(ages_in_hours):
            self._clock.now = now - timedelta(hours=age)
            self._create(f"session {index}")
        self._clock.now = now

    def test_filters_by_window(self) -> None:
        self._populate([1, 2, 30])
        result = self._store.filter_by_range(self._store.list(), hours=24)
        self.assertEqual(2, result.total)
        self.assertFalse(result.truncated)

    def test_include_all_ignores_window(self) -> None:
        self._populate([1, 2, 30])
        result = self._store.filter_by_range(self._store.list(), include_all=True)
        self.assertEqual(3, len(result.entries))

    def test_truncates_to_limit(self) -> None:
        self._populate([1, 2, 3])
        result = self._store.filter_by_range(self._store.list(), hours=24, limit=2)
        self.assertEqual(2, len(result.entries))
        self.assertTrue(result.truncated)
        self.assertEqual(3, result.total)

    def test_limit_is_capped_at_max_status_limit(self) -> None:
        created_at = to_iso(self._clock.now - timedelta(minutes=5))
        records = [
            SessionRecord(
                id=f"session-{index}",
                status=SessionStatus.COMPLETED,
                created_at=created_at,
                model="gpt-5.1",
                options=RunOptions(prompt="p", model="gpt-5.1"),
            )
            for index in range(MAX_STATUS_LIMIT + 5)
        ]

        result = filter_by_range(records, limit=5000, now=self._clock.now)

        self.assertEqual(MAX_STATUS_LIMIT, len(result.entries))
        self.assertTrue(result.truncated)
        self.assertEqual(MAX_STATUS_LIMIT + 5, result.total)

        exact = filter_by_range(records[:MAX_STATUS_LIMIT], limit=5000, now=self._clock.now)
        self.assertFalse(exact.truncated)
        self.assertEqual(MAX_STATUS_LIMIT, len(exact.entries))

    def test_filtering_is_idempotent(self) -> None:
        self._populate([1, 2, 30, 40])
        once = self._store.filter_by_range(self._store.list(), hours=24)
        twice = self._store.filter_by_range(once.entries, hours=24)
        self.assertEqual(once.entries, twice.entries)

    def test_preserves_input_order(self) -> None:
        self._populate([3, 1, 2])
        records = self._store.list()
        result = self._store.filter_by_range(records, hours=24)
        self.assertEqual([r.id for r in records], [r.id for r in result.entries])
        self.assertTrue(all(re.match(r"^\d{4}-", r.id) for r in result.entries))
