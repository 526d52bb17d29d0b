from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "opsdocs"
    database_url: str = "sqlite+aiosqlite:///./opsdocs.db"
    db_echo: bool = False
    create_tables_on_startup: bool = True

    log_level: str = "INFO"

    default_page_size: int = 50
    max_page_size: int = 100

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
