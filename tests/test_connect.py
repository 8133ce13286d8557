import pytest

from sqlscope.config import DatabaseDriver, DBConfig
from sqlscope.connect import create_database_repository, open_database
from sqlscope.driver import DriverNotFoundError, registered
from sqlscope.mssql import MssqlDBRepository
from sqlscope.mysql import MySQLDBRepository
from sqlscope.oracle import OracleDBRepository
from sqlscope.postgresql import PostgreSQLDBRepository
from sqlscope.sqlite import SQLiteDBRepository


@pytest.mark.parametrize(
    "driver",
    [
        DatabaseDriver.MYSQL,
        DatabaseDriver.MYSQL8,
        DatabaseDriver.MYSQL57,
        DatabaseDriver.MYSQL56,
        DatabaseDriver.SQLITE3,
    ],
)
def test_openable_drivers_are_registered(driver):
    assert registered(driver) is True


def test_open_sqlite_and_build_repository():
    connection = open_database(DBConfig(driver="sqlite3", data_source_name=":memory:"))
    try:
        repo = create_database_repository(DatabaseDriver.SQLITE3, connection)
        assert isinstance(repo, SQLiteDBRepository)
        repo.execute("CREATE TABLE t (a INTEGER)")
        assert repo.tables() == ["t"]
    finally:
        connection.close()


@pytest.mark.parametrize(
    "driver, cls",
    [
        ("postgresql", PostgreSQLDBRepository),
        ("mssql", MssqlDBRepository),
        ("oracle", OracleDBRepository),
        ("mysql", MySQLDBRepository),
    ],
)
def test_factories_build_matching_repository(driver, cls):
    sentinel = object()
    repo = create_database_repository(driver, sentinel)
    assert isinstance(repo, cls)
    assert repo.conn is sentinel


def test_mysql_repository_reports_its_driver():
    repo = create_database_repository(DatabaseDriver.MYSQL57, object())
    assert repo.driver() == DatabaseDriver.MYSQL57


def test_unknown_driver_repository_raises():
    with pytest.raises(DriverNotFoundError, match="driver not found, nosuch"):
        create_database_repository("nosuch", object())


def test_unknown_driver_open_raises():
    with pytest.raises(DriverNotFoundError):
        open_database(DBConfig(driver="nosuch"))