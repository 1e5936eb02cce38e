import json
from datetime import timedelta

from tests.sessions.base import SessionStoreTestCase


class RetentionTests(SessionStoreTestCase):
    def _create_aged(self, age_hours: float, prompt: str):
        now = self._clock.now
        self._clock.now = now - timedelta(hours=age_hours)
        try:
            return self._create(prompt)
        finally:
            self._clock.now = now

    def test_deletes_sessions_older_than_cutoff(self) -> None:
        recent = self._create_aged(1, "recent")
        self._create_aged(25, "yesterday")
        self._create_aged(200, "last week")

        result = self._store.delete_older_than(hours=24)

        self.assertEqual(2, result.deleted)
        self.assertEqual([recent.id], [r.id for r in self._store.list()])

    def test_include_all_deletes_everything(self) -> None:
        self._create_aged(1, "recent")
        self._create_aged(200, "old")

        result = self._store.delete_older_than(include_all=True)

        self.assertEqual(2, result.deleted)
        self.assertEqual([], self._store.list())

    def test_nothing_to_delete(self) -> None:
        self._create_aged(1, "recent")
        self.assertEqual(0, self._store.delete_older_than(hours=24).deleted)

    def test_directory_without_record_uses_filesystem_time(self) -> None:
        self._store.ensure_storage()
        (self._store.root / "orphan").mkdir()
        self._clock.now += timedelta(days=3650)

        result = self._store.delete_older_than(hours=24)

        self.assertEqual(1, result.deleted)
        self.assertFalse((self._store.root / "orphan").exists())

    def test_unparseable_created_at_falls_back_without_aborting(self) -> None:
        broken = self._create_aged(1, "broken timestamp")
        self._create_aged(200, "old")
        path = self._store.session_dir(broken.id) / "session.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        data["created_at"] = 12345
        path.write_text(json.dumps(data), encoding="utf-8")
        self._clock.now += timedelta(days=3650)

        result = self._store.delete_older_than(hours=24)

        self.assertEqual(2, result.deleted)
        self.assertFalse(self._store.session_dir(broken.id).exists())
