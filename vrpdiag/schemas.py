"""
Pydantic schemas for configuration, settings, and report serialization.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import ReasonCode


class TieBreakPolicy(str, Enum):
    """How the resolver picks the representative vehicle for the winning code."""
    NEAREST_MISS = "nearest_miss"  # lowest severity, then fleet order
    FLEET_ORDER = "fleet_order"    # first vehicle in fleet order


class DiagnosticsConfig(BaseModel):
    """Feasibility evaluation and reason resolution settings."""
    exhaustive: bool = Field(
        default=False,
        description="Run every checker at every position instead of stopping at the first violation"
    )
    tie_break: TieBreakPolicy = Field(default=TieBreakPolicy.NEAREST_MISS)
    max_workers: int = Field(default=1, ge=1, le=64)
    time_limit_seconds: Optional[float] = Field(default=None, gt=0)
    use_search_evidence: bool = Field(default=True)
    disabled_codes: List[ReasonCode] = Field(default_factory=list)

    @field_validator("disabled_codes")
    @classmethod
    def fallback_not_disabled(cls, v):
        """NO_REASON_FOUND has no checker and cannot be switched off."""
        if ReasonCode.NO_REASON_FOUND in v:
            raise ValueError("NO_REASON_FOUND cannot be disabled")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR)$"
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


class ProjectConfig(BaseModel):
    """Top-level project configuration."""
    name: str = Field(default="VRP Unassigned Diagnostics")
    version: str = Field(default="0.1.0")


class AppConfig(BaseModel):
    """Complete application configuration loaded from params.yaml."""
    project: ProjectConfig = Field(default_factory=ProjectConfig)
    diagnostics: DiagnosticsConfig = Field(default_factory=DiagnosticsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class Settings(BaseSettings):
    """Environment-based settings."""
    model_config = SettingsConfigDict(
        env_prefix="VRPDIAG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    config_path: str = Field(default="config/params.yaml")
    log_level: Optional[str] = Field(default=None, pattern="^(DEBUG|INFO|WARNING|ERROR)$")


# Report fragment schemas
class ReasonResponse(BaseModel):
    """One reason for an unassigned job."""
    code: ReasonCode
    description: str


class UnassignedJobResponse(BaseModel):
    """Unassigned job with its reasons, as emitted in the solution."""
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobId")
    reasons: List[ReasonResponse]
