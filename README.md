# sqlscope

sqlscope reads the structure of a database (schemas, tables, columns and
foreign keys) and keeps it in an in-memory cache that editor tooling can query.
It can also tell whether a SQL statement returns rows or only changes data.

Repositories exist for the drivers `mysql` (and `mysql8`, `mysql57`,
`mysql56`), `postgresql`, `sqlite3`, `mssql` and `oracle`.

## Installation

```
pip install sqlscope
```

Run the test suite with:

```
pip install "sqlscope[test]"
pytest
```

## Connection configuration

A connection is described by `sqlscope.config.DBConfig`. It is usually built
from a mapping that uses the key names of a JSON or YAML settings file:

```python
from sqlscope.config import DBConfig

cfg = DBConfig.from_dict({
    "alias": "local",
    "driver": "sqlite3",
    "dataSourceName": "app.db",
})
cfg.validate()  # raises ConfigError when a required field is missing or invalid
```

For networked databases give either `dataSourceName` or the parts `proto`
(`tcp`, `udp` or `unix`), `user`, `passwd`, `host`, `port`, `path`, `dbName`
and `params`. MySQL connections may go through an SSH tunnel described by
`sshConfig` (`host`, `port`, `user`, `privateKey`, `passPhrase`);
`SSHConfig.load_private_key` reads and decrypts the key file.

## Opening a database and caching its schema

`sqlscope.connect.open_database` opens connections for the `mysql` family
(through pymysql, optionally over SSH with paramiko) and for `sqlite3`
(through the standard `sqlite3` module). `create_database_repository` builds
the matching repository from either a `DBConnection` or a plain DB-API
connection.

```python
from sqlscope.connect import open_database, create_database_repository
from sqlscope.worker import Worker

conn = open_database(cfg)
repo = create_database_repository(cfg.driver, conn)

worker = Worker()
worker.start()
worker.recache(repo)

cache = worker.cache()
print(cache.sorted_schemas())
print(cache.sorted_tables())
for col in cache.column_descs("users") or []:
    print(col.name, col.oneline_desc())

worker.stop()
conn.close()
```

`recache` builds the primary cache (schemas, tables, the columns of the
default schema and its foreign keys) right away, then queues a request for
the background thread to load the columns of every schema. `stop` lets the
thread finish pending requests and waits for it.

`DBCache` lookups of schemas, tables and columns ignore case. Markdown
descriptions for hover text come from `sqlscope.database.table_doc` and
`sqlscope.database.column_doc`.

## Connection strings

`sqlscope.postgresql.gen_postgres_config`, `sqlscope.mssql.gen_mssql_config`
and `sqlscope.oracle.gen_oracle_config` turn a `DBConfig` into the
connection string for that database, and `sqlscope.mysql.gen_mysql_config`
into a `MySQLConfig` (see also `parse_dsn` and `MySQLConfig.format_dsn`):

```python
from sqlscope.config import DBConfig
from sqlscope.postgresql import gen_postgres_config

cfg = DBConfig.from_dict({
    "driver": "postgresql",
    "proto": "tcp",
    "user": "app",
    "passwd": "password",
    "dbName": "appdb",
})
gen_postgres_config(cfg)
# "dbname=appdb host=127.0.0.1 password=password port=5432 user=app"
```

## Reading query results

`sqlscope.scan.columns(cursor)` returns the column names of a DB-API cursor,
naming blank ones `col<index>`, and `scan_rows(cursor, column_length)` reads
the remaining rows as lists of display strings.

## Classifying statements

```python
from sqlscope.query_type import query_exec_type

query_exec_type("select * from city", "")             # ("SELECT", True)
query_exec_type("delete from city where id = 1", "")  # ("DELETE", False)
```

The second value is `True` when the statement should be run as a query that
returns rows, and `False` when it should be executed.

## What sqlscope does not do

- It does not open PostgreSQL, SQL Server or Oracle connections. For those
  drivers, connect with a DB-API driver of your choice and pass the
  connection to `create_database_repository`; the SQL Server repository uses
  `%s` placeholders and the Oracle one `:1` placeholders.
- It has no command-line program, no editor server and no SQL formatter; it
  is a library to build such tools on.