from sqlscope.cache import DBCache, DBCacheGenerator, column_database_key
from sqlscope.database import ColumnBase, ColumnDesc, DBRepository


class FakeRepo(DBRepository):
    def __init__(self, current="public", schemas=("public", "Sales"), tables=None,
                 columns=(), all_columns=(), fks=()):
        self._current = current
        self._schemas = list(schemas)
        self._tables = tables or {}
        self._columns = list(columns)
        self._all_columns = list(all_columns)
        self._fks = list(fks)
        self.described = []

    def driver(self):
        return "fake"

    def current_database(self):
        return self._current

    def databases(self):
        return list(self._schemas)

    def current_schema(self):
        return self._current

    def schemas(self):
        return list(self._schemas)

    def schema_tables(self):
        return dict(self._tables)

    def describe_database_table(self):
        return list(self._all_columns)

    def describe_database_table_by_schema(self, schema_name):
        self.described.append(schema_name)
        return [c for c in self._columns if c.schema == schema_name]

    def describe_foreign_keys_by_schema(self, schema_name):
        return list(self._fks)

    def execute(self, query):
        return 0

    def query(self, query):
        return []


def _repo():
    cols = [
        ColumnDesc(schema="public", table="users", name="id", type="int", key="YES"),
        ColumnDesc(schema="public", table="users", name="name", type="text"),
        ColumnDesc(schema="public", table="orders", name="user_id", type="int"),
    ]
    fk = [(ColumnBase("public", "orders", "user_id"), ColumnBase("public", "users", "id"))]
    return FakeRepo(
        tables={"public": ["users", "orders"], "Sales": ["deals"]},
        columns=cols,
        all_columns=cols + [ColumnDesc(schema="Sales", table="deals", name="amount")],
        fks=[fk],
    ), fk


def test_column_database_key():
    assert column_database_key("Public", "users") == "PUBLIC\tUSERS"


def test_primary_schemas_and_tables():
    repo, _ = _repo()
    cache = DBCacheGenerator(repo).generate_primary()
    assert cache.default_schema == "public"
    assert cache.database("sales") == "Sales"
    assert cache.database("missing") is None
    assert cache.sorted_schemas() == sorted(["public", "Sales"])
    assert cache.sorted_tables() == sorted(["users", "orders"])
    assert cache.sorted_tables_by_db_name("SALES") == ["deals"]
    assert cache.sorted_tables_by_db_name("nope") is None


def test_primary_columns_only_default_schema():
    repo, _ = _repo()
    cache = DBCacheGenerator(repo).generate_primary()
    assert repo.described == ["public"]
    assert [c.name for c in cache.column_descs("USERS")] == ["id", "name"]
    assert cache.column_database("Sales", "deals") is None
    assert cache.column("users", "NAME").type == "text"
    assert cache.column("users", "nope") is None
    assert cache.column("ghost", "id") is None


def test_foreign_keys_indexed_both_ways():
    repo, fk = _repo()
    cache = DBCacheGenerator(repo).generate_primary()
    assert cache.foreign_keys["orders"]["users"] == [fk]
    assert cache.foreign_keys["users"]["orders"] == [fk]


def test_empty_current_schema_falls_back():
    repo = FakeRepo(current="", schemas=["only"])
    cache = DBCacheGenerator(repo).generate_primary()
    assert cache.default_schema == "only"
    assert repo.described == ["only"]


def test_secondary_covers_all_schemas():
    repo, _ = _repo()
    columns = DBCacheGenerator(repo).generate_secondary()
    assert [c.name for c in columns[column_database_key("sales", "deals")]] == ["amount"]
    assert len(columns[column_database_key("public", "users")]) == 2


def test_empty_cache_sorted_tables():
    assert DBCache().sorted_tables() == []