"""Configuration schema: Pydantic models for julials config files."""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class JuliaConfig(BaseModel):
    """The ``julia`` section.

    The whole section is forwarded to the server as initialization options,
    so keys this client does not know about are kept.
    """
    enabled: bool = True
    executable_path: str = Field("", alias="executablePath")
    environment_path: str = Field("", alias="environmentPath")
    lint: Dict[str, Any] = Field(default_factory=dict)
    format: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: Optional[str] = None
    format: Optional[Literal["kv", "json", "pretty"]] = None
    console: Optional[bool] = None
    file: Optional[bool] = None
    dev_file: Optional[bool] = Field(None, alias="devFile")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class Config(BaseModel):
    """Main configuration schema."""
    schema_: Optional[str] = Field(None, alias="$schema")
    log_level: Optional[str] = Field(None, alias="logLevel")
    logging: Optional[LoggingConfig] = None
    julia: JuliaConfig = Field(default_factory=JuliaConfig)

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    def section(self, name: str) -> Any:
        """Look up a dotted section such as ``julia.lint``.

        Keys are matched by their on-disk (camelCase) names. Returns None
        when any segment is missing.
        """
        value: Any = self.model_dump(by_alias=True, exclude_none=True)
        for part in name.split("."):
            if not isinstance(value, dict) or part not in value:
                return None
            value = value[part]
        return value
