"""
Application Configuration using Pydantic Settings

Loads configuration from environment variables with sensible defaults, and
derives the explicit AdapterConfig value that is threaded into each adapter.
"""

from __future__ import annotations

from typing import Any, List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from iotbench.models.schema import SensorType

DataModel = Literal["tree", "table"]
ExecutionMode = Literal["SESSION", "JDBC", "REST"]

VALID_DATA_MODELS: frozenset[str] = frozenset({"tree", "table"})
VALID_EXECUTION_MODES: frozenset[str] = frozenset({"SESSION", "JDBC", "REST"})

# Encodings accepted by IoTDB; anything else is rejected when the config is built.
VALID_ENCODINGS: frozenset[str] = frozenset(
    {
        "PLAIN",
        "DICTIONARY",
        "RLE",
        "DIFF",
        "TS_2DIFF",
        "BITMAP",
        "GORILLA_V1",
        "REGULAR",
        "GORILLA",
        "ZIGZAG",
        "CHIMP",
        "SPRINTZ",
        "RLBE",
    }
)
VALID_COMPRESSORS: frozenset[str] = frozenset(
    {"UNCOMPRESSED", "SNAPPY", "GZIP", "LZ4", "ZSTD", "LZMA2"}
)


def _split_csv(raw: str) -> list[str]:
    return [part.strip() for part in str(raw or "").split(",") if part.strip()]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # ========================================================================
    # IoTDB Connection Settings
    # ========================================================================
    # Comma-separated lists are accepted for clusters; the first host is used for
    # metadata sessions and the REST endpoint.
    IOTDB_HOST: str = "127.0.0.1"
    IOTDB_PORT: str = "6667"
    IOTDB_USERNAME: str = "root"
    IOTDB_PASSWORD: str = "root"
    # Optional database segment. Empty means device paths are root.<group>...
    IOTDB_DB_NAME: str = ""

    IOTDB_REST_PORT: int = 18080
    IOTDB_REST_AUTHORIZATION: str = "Basic cm9vdDpyb290"

    # ========================================================================
    # Adapter Modes
    # ========================================================================
    IOTDB_DATA_MODEL: str = "tree"
    IOTDB_EXECUTION_MODE: str = "SESSION"

    # ========================================================================
    # Schema Settings
    # ========================================================================
    IS_SENSOR_TS_ALIGNMENT: bool = True
    # If False, register_schema() only reports elapsed time (read-only runs).
    CREATE_SCHEMA: bool = True
    COMPRESSOR: str = "LZ4"

    ENCODING_BOOLEAN: str = "RLE"
    ENCODING_INT32: str = "TS_2DIFF"
    ENCODING_INT64: str = "TS_2DIFF"
    ENCODING_FLOAT: str = "GORILLA"
    ENCODING_DOUBLE: str = "GORILLA"
    ENCODING_TEXT: str = "DICTIONARY"
    ENCODING_STRING: str = "DICTIONARY"
    ENCODING_BLOB: str = "PLAIN"
    ENCODING_TIMESTAMP: str = "TS_2DIFF"
    ENCODING_DATE: str = "TS_2DIFF"

    # ========================================================================
    # Workload Policy
    # ========================================================================
    IOTDB_USE_DEBUG: bool = False
    IOTDB_USE_DEBUG_RATIO: float = 0.01
    IS_COMPARISON: bool = False
    IS_QUIET_MODE: bool = True
    DATA_SEED: int = 666

    # ========================================================================
    # Transport Settings
    # ========================================================================
    # Timeouts are owned by the transport; the adapter never retries.
    ENABLE_THRIFT_COMPRESSION: bool = False
    SESSION_FETCH_SIZE: int = 5000
    QUERY_TIMEOUT_MS: int = 0
    REST_TIMEOUT_SECONDS: float = 60.0

    # ========================================================================
    # Logging Settings
    # ========================================================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class AdapterConfig(BaseModel):
    """Explicit, read-only configuration for one adapter instance.

    Built once (usually via ``from_settings``) and passed to the adapter, which
    hands the relevant pieces to its model and execution strategies.
    """

    model_config = ConfigDict(frozen=True)

    hosts: List[str] = Field(default_factory=lambda: ["127.0.0.1"])
    ports: List[int] = Field(default_factory=lambda: [6667])
    username: str = "root"
    password: str = "root"
    database: str = ""

    data_model: DataModel = "tree"
    execution_mode: ExecutionMode = "SESSION"

    aligned: bool = True
    create_schema: bool = True
    compressor: str = "LZ4"
    encodings: dict[SensorType, str] = Field(
        default_factory=lambda: {
            SensorType.BOOLEAN: "RLE",
            SensorType.INT32: "TS_2DIFF",
            SensorType.INT64: "TS_2DIFF",
            SensorType.FLOAT: "GORILLA",
            SensorType.DOUBLE: "GORILLA",
            SensorType.TEXT: "DICTIONARY",
            SensorType.STRING: "DICTIONARY",
            SensorType.BLOB: "PLAIN",
            SensorType.TIMESTAMP: "TS_2DIFF",
            SensorType.DATE: "TS_2DIFF",
        }
    )

    debug_enabled: bool = False
    debug_ratio: float = Field(0.0, ge=0.0, le=1.0)
    comparison_mode: bool = False
    quiet_mode: bool = True
    data_seed: int = 666

    rest_port: int = Field(18080, ge=1, le=65535)
    rest_authorization: str = ""
    rest_timeout_seconds: float = 60.0
    enable_thrift_compression: bool = False
    fetch_size: int = 5000
    query_timeout_ms: int = 0

    @field_validator("data_model", mode="before")
    @classmethod
    def _normalize_data_model(cls, v: Any) -> str:
        mode = str(v or "").strip().lower()
        if mode not in VALID_DATA_MODELS:
            raise ValueError(f"data_model must be tree or table (got '{v}')")
        return mode

    @field_validator("execution_mode", mode="before")
    @classmethod
    def _normalize_execution_mode(cls, v: Any) -> str:
        mode = str(v or "").strip().upper()
        if mode not in VALID_EXECUTION_MODES:
            raise ValueError(f"execution_mode must be SESSION, JDBC, or REST (got '{v}')")
        return mode

    @field_validator("hosts")
    @classmethod
    def _require_hosts(cls, v: List[str]) -> List[str]:
        hosts = [str(h).strip() for h in v if str(h).strip()]
        if not hosts:
            raise ValueError("at least one IoTDB host is required")
        return hosts

    @field_validator("compressor", mode="before")
    @classmethod
    def _normalize_compressor(cls, v: Any) -> str:
        name = str(v or "").strip().upper()
        if name not in VALID_COMPRESSORS:
            raise ValueError(f"unsupported compressor '{v}'")
        return name

    @field_validator("encodings")
    @classmethod
    def _validate_encodings(cls, v: dict[SensorType, str]) -> dict[SensorType, str]:
        out: dict[SensorType, str] = {}
        for sensor_type, encoding in v.items():
            name = str(encoding or "").strip().upper()
            if name not in VALID_ENCODINGS:
                raise ValueError(f"unsupported encoding '{encoding}' for {sensor_type.value}")
            out[sensor_type] = name
        return out

    @property
    def node_urls(self) -> list[str]:
        """host:port pairs; a single port is reused for every host."""
        ports = list(self.ports) or [6667]
        urls: list[str] = []
        for i, host in enumerate(self.hosts):
            port = ports[i] if i < len(ports) else ports[-1]
            urls.append(f"{host}:{port}")
        return urls

    @property
    def rest_base_url(self) -> str:
        return f"http://{self.hosts[0]}:{self.rest_port}"

    def encoding_for(self, sensor_type: SensorType) -> str:
        """Encoding configured for a sensor type (PLAIN when not configured)."""
        return self.encodings.get(sensor_type, "PLAIN")

    @classmethod
    def from_settings(cls, s: Settings) -> AdapterConfig:
        return cls(
            hosts=_split_csv(s.IOTDB_HOST),
            ports=[int(p) for p in _split_csv(s.IOTDB_PORT)],
            username=s.IOTDB_USERNAME,
            password=s.IOTDB_PASSWORD,
            database=s.IOTDB_DB_NAME,
            data_model=s.IOTDB_DATA_MODEL,
            execution_mode=s.IOTDB_EXECUTION_MODE,
            aligned=s.IS_SENSOR_TS_ALIGNMENT,
            create_schema=s.CREATE_SCHEMA,
            compressor=s.COMPRESSOR,
            encodings={
                SensorType.BOOLEAN: s.ENCODING_BOOLEAN,
                SensorType.INT32: s.ENCODING_INT32,
                SensorType.INT64: s.ENCODING_INT64,
                SensorType.FLOAT: s.ENCODING_FLOAT,
                SensorType.DOUBLE: s.ENCODING_DOUBLE,
                SensorType.TEXT: s.ENCODING_TEXT,
                SensorType.STRING: s.ENCODING_STRING,
                SensorType.BLOB: s.ENCODING_BLOB,
                SensorType.TIMESTAMP: s.ENCODING_TIMESTAMP,
                SensorType.DATE: s.ENCODING_DATE,
            },
            debug_enabled=s.IOTDB_USE_DEBUG,
            debug_ratio=s.IOTDB_USE_DEBUG_RATIO,
            comparison_mode=s.IS_COMPARISON,
            quiet_mode=s.IS_QUIET_MODE,
            data_seed=s.DATA_SEED,
            rest_port=s.IOTDB_REST_PORT,
            rest_authorization=s.IOTDB_REST_AUTHORIZATION,
            rest_timeout_seconds=s.REST_TIMEOUT_SECONDS,
            enable_thrift_compression=s.ENABLE_THRIFT_COMPRESSION,
            fetch_size=s.SESSION_FETCH_SIZE,
            query_timeout_ms=s.QUERY_TIMEOUT_MS,
        )


# Create global settings instance (entry points only; adapters take AdapterConfig)
settings = Settings()
