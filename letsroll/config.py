from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="LETSROLL_", extra="ignore"
    )

    # Append a total to numeric rolls when the request names no action at all.
    auto_total: bool = False

    # Upper bounds for a single dice token (u8 roll count, u16 sides).
    max_dice_number: int = 255
    max_dice_sides: int = 65535

    # Fixed seed for reproducible rolls; None draws from system entropy.
    seed: int | None = None

    log_level: str = "WARNING"


settings = Settings()
