"""Service-specific settings for control-assessment-engine.

Settings use the CONTROL_ASSESSMENT_ prefix and cover:
- Structured logging (level and renderer)
- The interrupt listener armed around every control evaluation
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for control-assessment-engine.

    Environment variable prefix: CONTROL_ASSESSMENT_
    """

    service_name: str = "control-assessment-engine"

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------

    log_level: str = Field(
        default="INFO",
        description="Minimum log level emitted by the engine (DEBUG, INFO, WARNING, ERROR).",
    )
    log_json: bool = Field(
        default=False,
        description="Render log events as JSON lines instead of the console renderer.",
    )

    # -------------------------------------------------------------------------
    # Interrupt handling
    # -------------------------------------------------------------------------

    handle_interrupts: bool = Field(
        default=True,
        description="Arm the interrupt listener while a control evaluation runs. "
        "When disabled, changes are only reverted at normal completion.",
    )
    interrupt_signals: list[str] = Field(
        default_factory=lambda: ["SIGINT", "SIGTERM"],
        description="Names of the process signals that trigger emergency cleanup.",
    )
    exit_on_interrupt: bool = Field(
        default=True,
        description="Exit the process after emergency cleanup. When false, the evaluation "
        "stops scheduling further steps and returns normally.",
    )
    interrupt_exit_code: int = Field(
        default=0,
        description="Process exit status used after emergency cleanup.",
    )

    model_config = SettingsConfigDict(env_prefix="CONTROL_ASSESSMENT_")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance.

    Returns:
        Settings loaded from the environment on first call.
    """
    return Settings()
