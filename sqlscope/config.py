"""Connection settings for the supported database drivers."""

from __future__ import annotations

import enum
import io
from dataclasses import dataclass, field
from typing import Any, Mapping

import paramiko


class Proto(str, enum.Enum):
    """Network protocol used to reach a database server."""

    TCP = "tcp"
    UDP = "udp"
    UNIX = "unix"


class DatabaseDriver(str, enum.Enum):
    """Database drivers known to the connection layer."""

    MYSQL = "mysql"
    MYSQL8 = "mysql8"
    MYSQL57 = "mysql57"
    MYSQL56 = "mysql56"
    POSTGRESQL = "postgresql"
    SQLITE3 = "sqlite3"
    MSSQL = "mssql"
    ORACLE = "oracle"


class ConfigError(ValueError):
    """Raised when a connection configuration is missing or invalid."""


_MYSQL_LIKE = frozenset(
    {
        DatabaseDriver.MYSQL,
        DatabaseDriver.MYSQL8,
        DatabaseDriver.MYSQL57,
        DatabaseDriver.MYSQL56,
        DatabaseDriver.POSTGRESQL,
    }
)

_KEY_CLASSES = (paramiko.RSAKey, paramiko.ECDSAKey, paramiko.Ed25519Key)


def _as_enum(enum_cls: type[enum.Enum], value: Any) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return value


@dataclass
class SSHConfig:
    """Settings for tunnelling a database connection through SSH."""

    host: str = ""
    port: int = 0
    user: str = ""
    pass_phrase: str = ""
    private_key: str = ""

    def validate(self) -> None:
        if not self.host:
            raise ConfigError("required: connections[]sshConfig.host")
        if not self.user:
            raise ConfigError("required: connections[].sshConfig.user")
        if not self.private_key:
            raise ConfigError("required: connections[].sshConfig.privateKey")

    def endpoint(self) -> str:
        return f"{self.host}:{self.port}"

    def load_private_key(self) -> paramiko.PKey:
        """Read and parse the private key file, decrypting it if a pass phrase is set."""
        try:
            with open(self.private_key, "rb") as fh:
                raw = fh.read()
        except OSError as exc:
            raise ConfigError(
                f"cannot read SSH private key file, PrivateKey={self.private_key}, {exc}"
            ) from exc

        text = raw.decode("utf-8", errors="replace")
        phrase = self.pass_phrase or None
        last_error: Exception | None = None
        for key_cls in _KEY_CLASSES:
            try:
                return key_cls.from_private_key(io.StringIO(text), password=phrase)
            except (paramiko.SSHException, ValueError, TypeError) as exc:
                last_error = exc

        if phrase:
            message = "cannot parse SSH private key file with passphrase"
        else:
            message = "cannot parse SSH private key file"
        raise ConfigError(
            f"{message}, PrivateKey={self.private_key}, {last_error}"
        ) from last_error

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SSHConfig:
        return cls(
            host=data.get("host", "") or "",
            port=int(data.get("port", 0) or 0),
            user=data.get("user", "") or "",
            pass_phrase=data.get("passPhrase", "") or "",
            private_key=data.get("privateKey", "") or "",
        )


@dataclass
class DBConfig:
    """One configured database connection."""

    alias: str = ""
    driver: DatabaseDriver | str = ""
    data_source_name: str = ""
    proto: Proto | str = ""
    user: str = ""
    passwd: str = ""
    host: str = ""
    port: int = 0
    path: str = ""
    db_name: str = ""
    params: dict[str, str] = field(default_factory=dict)
    ssh_config: SSHConfig | None = None

    def __post_init__(self) -> None:
        self.driver = _as_enum(DatabaseDriver, self.driver)
        self.proto = _as_enum(Proto, self.proto)

    def validate(self) -> None:
        if not self.driver:
            raise ConfigError("required: connections[].driver")

        if self.driver in _MYSQL_LIKE:
            self._validate_mysql_like()
        elif self.driver == DatabaseDriver.SQLITE3:
            if not self.data_source_name:
                raise ConfigError("required: connections[].dataSourceName")
        elif self.driver == DatabaseDriver.MSSQL:
            self._validate_mssql()
        elif self.driver == DatabaseDriver.ORACLE:
            self._validate_oracle()
        else:
            raise ConfigError("invalid: connections[].driver")

    def _require_dsn_or_proto(self) -> None:
        if not self.data_source_name and not self.proto:
            raise ConfigError(
                "required: connections[].dataSourceName or connections[].proto"
            )

    def _validate_mysql_like(self) -> None:
        self._require_dsn_or_proto()
        if self.data_source_name or not self.proto:
            return
        if not self.user:
            raise ConfigError("required: connections[].user")
        if self.proto in (Proto.TCP, Proto.UDP):
            if not self.host:
                raise ConfigError("required: connections[].host")
        elif self.proto == Proto.UNIX:
            if not self.path:
                raise ConfigError("required: connections[].path")
        else:
            raise ConfigError("invalid: connections[].proto")
        if self.ssh_config is not None:
            self.ssh_config.validate()

    def _validate_mssql(self) -> None:
        self._require_dsn_or_proto()
        if self.data_source_name or not self.proto:
            return
        if not self.user:
            raise ConfigError("required: connections[].user")
        if self.proto == Proto.TCP:
            if not self.host:
                raise ConfigError("required: connections[].host")
        elif self.proto not in (Proto.UDP, Proto.UNIX):
            raise ConfigError("invalid: connections[].proto")

    def _validate_oracle(self) -> None:
        self._require_dsn_or_proto()
        if self.data_source_name:
            return
        if not self.user:
            raise ConfigError("required: connections[].user")
        if not self.passwd:
            raise ConfigError("required: connections[].Passwd")
        if not self.host:
            raise ConfigError("required: connections[].Host")
        if self.port <= 0:
            raise ConfigError("required: connections[].Port")
        if not self.db_name:
            raise ConfigError("required: connections[].DBName")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DBConfig:
        """Build a configuration from a mapping using the JSON/YAML key names."""
        ssh = data.get("sshConfig")
        return cls(
            alias=data.get("alias", "") or "",
            driver=data.get("driver", "") or "",
            data_source_name=data.get("dataSourceName", "") or "",
            proto=data.get("proto", "") or "",
            user=data.get("user", "") or "",
            passwd=data.get("passwd", "") or "",
            host=data.get("host", "") or "",
            port=int(data.get("port", 0) or 0),
            path=data.get("path", "") or "",
            db_name=data.get("dbName", "") or "",
            params={str(k): str(v) for k, v in (data.get("params") or {}).items()},
            ssh_config=SSHConfig.from_dict(ssh) if ssh else None,
        )