from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Настройки приложения и окружения.
    app_name: str = "Rift Bracket Engine"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    debug: bool = True
    database_url: str
    log_level: str = "INFO"

    # Параметры рейтинга Эло.
    elo_base_rating: int = 1200
    elo_k_factor: int = 32
    elo_scale: int = 400
    rating_apply_max_attempts: int = 3

    # Окна для таблицы лидеров.
    overtake_window_minutes: int = 5
    daily_changes_hours: int = 24

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()
