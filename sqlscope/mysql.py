"""MySQL connection settings, connection opening and metadata repository."""

from __future__ import annotations

from contextlib import closing
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence
from urllib.parse import quote_plus, unquote_plus

import paramiko
import pymysql

from sqlscope.config import DatabaseDriver, DBConfig, Proto, SSHConfig
from sqlscope.database import ColumnDesc, DBRepository, ForeignKey, parse_foreign_keys
from sqlscope.driver import DBConnection

_DEFAULT_PORT = 3306
_DEFAULT_SOCKET = "/tmp/mysql.sock"


class MySQLConnectError(ConnectionError):
    """Raised when a MySQL server (or the SSH host in front of it) cannot be reached."""


@dataclass
class MySQLConfig:
    """Connection settings in the shape of a MySQL data source name."""

    user: str = ""
    passwd: str = ""
    net: str = ""
    addr: str = ""
    db_name: str = ""
    params: dict[str, str] = field(default_factory=dict)

    def format_dsn(self) -> str:
        """Render as ``[user[:passwd]@][net[(addr)]]/dbname[?param=value&...]``."""
        text = ""
        if self.user:
            text += self.user
            if self.passwd:
                text += ":" + self.passwd
            text += "@"
        if self.net:
            text += self.net
            if self.addr:
                text += f"({self.addr})"
        text += "/" + self.db_name
        if self.params:
            text += "?" + "&".join(
                f"{key}={quote_plus(self.params[key])}" for key in sorted(self.params)
            )
        return text


def _has_port(addr: str) -> bool:
    if addr.startswith("["):
        return "]:" in addr
    return addr.count(":") == 1


def _with_default_port(addr: str) -> str:
    if _has_port(addr):
        return addr
    host = addr.strip("[]")
    if ":" in host:
        return f"[{host}]:{_DEFAULT_PORT}"
    return f"{host}:{_DEFAULT_PORT}"


def parse_dsn(dsn: str) -> MySQLConfig:
    """Parse a MySQL data source name, filling in the default network and address."""
    cfg = MySQLConfig()
    slash = dsn.rfind("/")
    if slash < 0:
        if dsn:
            raise ValueError("invalid DSN: missing the slash separating the database name")
    else:
        head, tail = dsn[:slash], dsn[slash + 1 :]
        at = head.rfind("@")
        if at >= 0:
            cfg.user, _, cfg.passwd = head[:at].partition(":")
            head = head[at + 1 :]
        paren = head.find("(")
        if paren >= 0:
            if not head.endswith(")"):
                raise ValueError(
                    "invalid DSN: network address not terminated (missing closing brace)"
                )
            cfg.net, cfg.addr = head[:paren], head[paren + 1 : -1]
        else:
            cfg.net = head
        cfg.db_name, _, query = tail.partition("?")
        for part in filter(None, query.split("&")):
            key, sep, value = part.partition("=")
            if not sep:
                raise ValueError(f"invalid DSN: invalid parameter {part!r}")
            cfg.params[key] = unquote_plus(value)

    if not cfg.net:
        cfg.net = "tcp"
    if not cfg.addr:
        if cfg.net == "tcp":
            cfg.addr = f"127.0.0.1:{_DEFAULT_PORT}"
        elif cfg.net == "unix":
            cfg.addr = _DEFAULT_SOCKET
        else:
            raise ValueError(f"default addr for network '{cfg.net}' unknown")
    elif cfg.net == "tcp":
        cfg.addr = _with_default_port(cfg.addr)
    return cfg


def _proto_value(proto: Proto | str) -> str:
    return proto.value if isinstance(proto, Proto) else str(proto)


def gen_mysql_config(cfg: DBConfig) -> MySQLConfig:
    """Build MySQL settings from a configuration or its data source name."""
    if cfg.data_source_name:
        return parse_dsn(cfg.data_source_name)

    result = MySQLConfig(user=cfg.user, passwd=cfg.passwd, db_name=cfg.db_name)
    if cfg.proto in (Proto.TCP, Proto.UDP):
        host = cfg.host or "127.0.0.1"
        port = cfg.port or _DEFAULT_PORT
        result.addr = f"{host}:{port}"
        result.net = _proto_value(cfg.proto)
    elif cfg.proto == Proto.UNIX:
        if cfg.path:
            # A configured path falls back to the stock socket location.
            result.addr = _DEFAULT_SOCKET
        else:
            result.addr = cfg.path
            result.net = _proto_value(cfg.proto)
    else:
        raise ValueError(f"default addr for network {_proto_value(cfg.proto)} unknown")
    result.params = dict(cfg.params)
    return result


def _split_addr(addr: str) -> tuple[str, int]:
    if addr.startswith("["):
        host, _, rest = addr[1:].partition("]")
        port = rest[1:] if rest.startswith(":") else ""
    elif addr.count(":") == 1:
        host, _, port = addr.partition(":")
    else:
        host, port = addr, ""
    return host or "127.0.0.1", int(port) if port else _DEFAULT_PORT


def _connect_kwargs(cfg: MySQLConfig) -> dict[str, Any]:
    kwargs: dict[str, Any] = {
        "user": cfg.user,
        "password": cfg.passwd,
        "database": cfg.db_name or None,
    }
    if cfg.net == "unix" or cfg.addr.startswith("/"):
        kwargs["unix_socket"] = cfg.addr or _DEFAULT_SOCKET
    else:
        kwargs["host"], kwargs["port"] = _split_addr(cfg.addr)

    params = dict(cfg.params)
    charset = params.pop("charset", None)
    if charset:
        kwargs["charset"] = charset
    if params:
        kwargs["init_command"] = "SET " + ", ".join(f"{k}={v}" for k, v in params.items())
    return kwargs


def _open_via_ssh(
    kwargs: dict[str, Any], ssh_cfg: SSHConfig
) -> tuple[Any, paramiko.SSHClient]:
    key = ssh_cfg.load_private_key()
    client = paramiko.SSHClient()
    client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
    try:
        client.connect(
            hostname=ssh_cfg.host,
            port=ssh_cfg.port,
            username=ssh_cfg.user,
            pkey=key,
            allow_agent=False,
            look_for_keys=False,
        )
    except (paramiko.SSHException, OSError) as exc:
        client.close()
        raise MySQLConnectError(f"cannot ssh dial, {exc}") from exc

    target = (kwargs.pop("host", "127.0.0.1"), kwargs.pop("port", _DEFAULT_PORT))
    kwargs.pop("unix_socket", None)
    try:
        transport = client.get_transport()
        if transport is None:
            raise paramiko.SSHException("SSH transport is not open")
        channel = transport.open_channel("direct-tcpip", target, ("127.0.0.1", 0))
        conn = pymysql.connect(**kwargs, defer_connect=True)
        conn.connect(sock=channel)
    except (paramiko.SSHException, pymysql.MySQLError, OSError) as exc:
        client.close()
        raise MySQLConnectError(f"cannot connect database, {exc}") from exc
    return conn, client


def mysql_open(cfg: DBConfig) -> DBConnection:
    """Open and check a MySQL connection, tunnelling through SSH if configured."""
    kwargs = _connect_kwargs(gen_mysql_config(cfg))
    ssh_client: paramiko.SSHClient | None = None
    try:
        if cfg.ssh_config is not None:
            conn, ssh_client = _open_via_ssh(kwargs, cfg.ssh_config)
        else:
            conn = pymysql.connect(**kwargs)
        conn.ping(reconnect=False)
    except (pymysql.MySQLError, OSError) as exc:
        if ssh_client is not None:
            ssh_client.close()
        if isinstance(exc, MySQLConnectError):
            raise
        raise MySQLConnectError(f"cannot ping to database, {exc}") from exc
    return DBConnection(conn=conn, ssh_conn=ssh_client, driver=cfg.driver)


_DESCRIBE_COLUMNS = """
SELECT
    TABLE_SCHEMA,
    TABLE_NAME,
    COLUMN_NAME,
    COLUMN_TYPE,
    IS_NULLABLE,
    COLUMN_KEY,
    COLUMN_DEFAULT,
    EXTRA
FROM information_schema.COLUMNS
"""

_DESCRIBE_COLUMNS_BY_SCHEMA = (
    _DESCRIBE_COLUMNS + "WHERE information_schema.COLUMNS.TABLE_SCHEMA = %s\n"
)

_FOREIGN_KEYS_BY_SCHEMA = """
    select fks.CONSTRAINT_NAME,
           fks.TABLE_NAME,
           kcu.COLUMN_NAME,
           fks.REFERENCED_TABLE_NAME,
           kcu.REFERENCED_COLUMN_NAME
    from INFORMATION_SCHEMA.REFERENTIAL_CONSTRAINTS fks
             join INFORMATION_SCHEMA.KEY_COLUMN_USAGE kcu
                  on fks.CONSTRAINT_SCHEMA = kcu.TABLE_SCHEMA
                      and fks.TABLE_NAME = kcu.TABLE_NAME
                      and fks.CONSTRAINT_NAME = kcu.CONSTRAINT_NAME
    where fks.CONSTRAINT_SCHEMA = %s
    order by fks.CONSTRAINT_NAME,
             kcu.ORDINAL_POSITION
"""


def _column(row: Sequence[Any]) -> ColumnDesc:
    schema, table, name, type_, null, key, default, extra = row
    return ColumnDesc(
        schema=schema,
        table=table,
        name=name,
        type=type_,
        null=null,
        key=key,
        default=default,
        extra=extra,
    )


def _group_tables(rows: Iterable[Sequence[str]]) -> dict[str, list[str]]:
    result: dict[str, list[str]] = {}
    for schema, table in rows:
        result.setdefault(schema, []).append(table)
    return result


class MySQLDBRepository(DBRepository):
    """Metadata and statements over a DB-API connection to MySQL."""

    def __init__(self, conn: Any, driver: DatabaseDriver | str = "") -> None:
        self.conn = conn
        self._driver = driver

    def _fetch(self, sql: str, *params: Any) -> list[Sequence[Any]]:
        with closing(self.conn.cursor()) as cur:
            if params:
                cur.execute(sql, params)
            else:
                cur.execute(sql)
            return list(cur.fetchall())

    def driver(self) -> DatabaseDriver | str:
        return self._driver

    def current_database(self) -> str:
        rows = self._fetch("SELECT DATABASE()")
        if not rows:
            raise LookupError("no rows in result set")
        return rows[0][0]

    def databases(self) -> list[str]:
        rows = self._fetch("select SCHEMA_NAME from information_schema.SCHEMATA")
        return [row[0] for row in rows]

    def current_schema(self) -> str:
        return self.current_database()

    def schemas(self) -> list[str]:
        return self.databases()

    def schema_tables(self) -> dict[str, list[str]]:
        return _group_tables(
            self._fetch(
                """
    SELECT
        TABLE_SCHEMA,
        TABLE_NAME
    FROM
        information_schema.TABLES
    ORDER BY
        TABLE_SCHEMA,
        TABLE_NAME
    """
            )
        )

    def tables(self) -> list[str]:
        return [row[0] for row in self._fetch("SHOW TABLES")]

    def describe_database_table(self) -> list[ColumnDesc]:
        return [_column(row) for row in self._fetch(_DESCRIBE_COLUMNS)]

    def describe_database_table_by_schema(self, schema_name: str) -> list[ColumnDesc]:
        return [_column(row) for row in self._fetch(_DESCRIBE_COLUMNS_BY_SCHEMA, schema_name)]

    def describe_foreign_keys_by_schema(self, schema_name: str) -> list[ForeignKey]:
        return parse_foreign_keys(self._fetch(_FOREIGN_KEYS_BY_SCHEMA, schema_name), schema_name)

    def execute(self, query: str) -> int:
        """Run a statement, commit it and return the number of affected rows."""
        with closing(self.conn.cursor()) as cur:
            cur.execute(query)
            affected = cur.rowcount
        self.conn.commit()
        return affected

    def query(self, query: str) -> Any:
        """Run a statement and return the open cursor holding its rows."""
        cur = self.conn.cursor()
        cur.execute(query)
        return cur