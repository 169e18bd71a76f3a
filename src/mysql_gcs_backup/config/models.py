"""Pydantic models for backup configuration."""

from pydantic import BaseModel, Field, field_validator

DEFAULT_SKIP_DBS = ["information_schema", "performance_schema", "test"]


# ============================================================================
# Configuration Models
# ============================================================================


class ConnectionParams(BaseModel):
    """MySQL connection parameters.

    Passed through unchanged to schema/table listing and to ``mysqldump``.
    """

    user: str
    password: str = Field(repr=False)
    host: str = "localhost"
    port: int = Field(default=3306, ge=1, le=65535)


class StorageConfig(BaseModel):
    """Remote object storage settings."""

    bucket: str = Field(min_length=1)


class BackupConfig(BaseModel):
    """Complete configuration for one backup run."""

    mysql: ConnectionParams
    storage: StorageConfig | None = None         # required to run; plan works without it
    db_limit: int = Field(default=2, ge=1)       # concurrent schemas
    table_limit: int = Field(default=2, ge=1)    # concurrent tables per schema
    skip_dbs: list[str] = Field(default_factory=lambda: list(DEFAULT_SKIP_DBS))
    host_id: str | None = None                   # defaults to the machine hostname
    mysqldump: str = "mysqldump"                 # dump executable

    @field_validator("skip_dbs", mode="before")
    @classmethod
    def _split_skip_dbs(cls, value):
        """Accept a comma-separated string as well as a list."""
        if isinstance(value, str):
            return [name.strip() for name in value.split(",") if name.strip()]
        return value

    @property
    def excluded_schemas(self) -> frozenset[str]:
        return frozenset(self.skip_dbs)
