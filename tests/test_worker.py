import pytest

from sqlscope.cache import column_database_key
from sqlscope.database import ColumnDesc, DBRepository
from sqlscope.worker import Worker


class FakeRepo(DBRepository):
    def __init__(self, fail_primary=False, fail_secondary=False):
        self.fail_primary = fail_primary
        self.fail_secondary = fail_secondary
        self.current = [ColumnDesc(schema="main", table="users", name="id")]
        self.every = self.current + [ColumnDesc(schema="other", table="logs", name="msg")]

    def driver(self):
        return "fake"

    def current_database(self):
        return "main"

    def databases(self):
        return ["main", "other"]

    def current_schema(self):
        if self.fail_primary:
            raise RuntimeError("primary failed")
        return "main"

    def schemas(self):
        return ["main", "other"]

    def schema_tables(self):
        return {"main": ["users"], "other": ["logs"]}

    def describe_database_table(self):
        if self.fail_secondary:
            raise RuntimeError("secondary failed")
        return list(self.every)

    def describe_database_table_by_schema(self, schema_name):
        return [c for c in self.current if c.schema == schema_name]

    def describe_foreign_keys_by_schema(self, schema_name):
        return []

    def execute(self, query):
        return 0

    def query(self, query):
        return []


def test_cache_empty_before_recache():
    worker = Worker()
    worker.stop()
    assert worker.cache() is None


def test_recache_fills_primary_then_secondary():
    worker = Worker()
    worker.start()
    worker.recache(FakeRepo())
    worker.stop()
    cache = worker.cache()
    assert cache.default_schema == "main"
    assert column_database_key("other", "logs") in cache.columns_with_parent
    assert cache.column("users", "ID").name == "id"


def test_recache_primary_error_propagates():
    worker = Worker()
    with pytest.raises(RuntimeError, match="primary failed"):
        worker.recache(FakeRepo(fail_primary=True))
    assert worker.cache() is None


def test_secondary_failure_clears_columns():
    worker = Worker()
    worker.start()
    worker.recache(FakeRepo(fail_secondary=True))
    worker.stop()
    assert worker.cache().columns_with_parent == {}
    assert worker.cache().sorted_tables() == ["users"]


def test_pending_update_runs_after_late_start():
    worker = Worker()
    worker.recache(FakeRepo())
    assert column_database_key("other", "logs") not in worker.cache().columns_with_parent
    worker.start()
    worker.stop()
    assert column_database_key("other", "logs") in worker.cache().columns_with_parent