from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="TAGFN_", extra="ignore")

    app_name: str = "Tag Function Engine"

    # Storage
    sqlite_path: str = Field(default="readings.db")

    # Logging
    log_file: str = "tagfunctions.log"  # empty => console only
    log_level: str = "INFO"

    # Threshold defaults for reach/exceed/first-reach kinds
    temp_upper_threshold: float = 8.0
    temp_lower_threshold: float = 2.0
    humidity_upper_threshold: float = 80.0
    humidity_lower_threshold: float = 20.0

    # tempAvgDeviation literals when no tag is referenced
    avg_deviation_max_temp: float = 8.0
    avg_deviation_min_temp: float = 2.0

    # tempFluctuation / tempUniformityAverage
    default_decimal_places: int = Field(default=2, ge=0, le=10)

    # maxPowerUsageDuration runs on this share of a full charge
    power_budget_percent: float = 90.0

    # Per-bucket listings in the detail log
    detail_preview_lines: int = Field(default=10, ge=1)


settings = Settings()
