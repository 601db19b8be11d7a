from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "Chatbot"
    debug: bool = False

    # Paths
    db_path: Path = Path(__file__).resolve().parent.parent.parent / "chatbot.db"

    # LLM
    gemini_api_key: str = ""
    llm_base_url: str = ""  # empty = provider default endpoint
    default_model_id: str = "gemini-flash"

    # Generation limits
    max_steps: int = 5
    max_duration_sec: float = 60.0
    max_suggestions: int = 5

    # Tools
    active_capabilities: list[str] = ["document", "weather"]
    weather_api_url: str = "https://api.open-meteo.com/v1/forecast"

    # Auth - the fronting gateway sets this header after verifying the session
    auth_header: str = "X-User-Id"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = ["*"]

    model_config = {
        "env_file": str(Path(__file__).resolve().parent.parent.parent / ".env"),
        "env_prefix": "CHATBOT_",
    }


settings = Settings()
