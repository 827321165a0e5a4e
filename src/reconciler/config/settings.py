"""Pydantic model for validated runtime settings."""

from pydantic import BaseModel, Field


class RetrySettings(BaseModel):
    """Retry policy for retryable remote operation errors."""
    max_attempts: int = Field(default=3, ge=1, description="Attempts per step, including the first")
    backoff_seconds: float = Field(default=1.0, ge=0, description="Delay multiplied by the attempt number")


class Settings(BaseModel):
    """Runtime settings merged from defaults, user and project config."""
    state_path: str = Field(default=".reconciler/state.json", description="State file location")
    provider_store_path: str = Field(
        default=".reconciler/simulated_cloud.json",
        description="Where the simulated provider keeps its objects"
    )
    parallelism: int = Field(default=10, ge=1, description="Maximum concurrent adapter calls")
    lock_timeout: float = Field(default=0, ge=0, description="Seconds to wait for the state lock")
    refresh: bool = Field(default=True, description="Read remote objects before planning")
    allow_replace: bool = Field(default=True, description="Permit destroy-then-create on immutable changes")
    retry: RetrySettings = Field(default_factory=RetrySettings)
    log_level: str = Field(default="WARNING", description="Root log level for the reconciler logger")

    class Config:
        """Pydantic config."""
        extra = "forbid"
