from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    debug: bool = False
    log_level: str = "INFO"

    # Messenger platform
    verify_token: str = ""
    app_secret: str = ""
    page_access_token: str = ""
    graph_api_url: str = "https://graph.facebook.com/v19.0/me/messages"
    send_timeout_seconds: float = 30.0
    message_delay_seconds: float = 2.0

    # Listing dataset
    dataset_url: str = "http://localhost:8080/rentals.json"
    dataset_records_path: str = ""
    fetch_timeout_seconds: float = 15.0

    # Optional Telegram alerts
    alert_bot_token: str | None = None
    alert_chat_id: str | None = None

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
