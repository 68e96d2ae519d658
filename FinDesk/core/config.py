# FinDesk/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    # OpenAI
    openai_api_key: str = Field("", env="OPENAI_API_KEY")
    openai_chat_url: str = Field("https://api.openai.com/v1/chat/completions", env="OPENAI_CHAT_URL")
    openai_chat_model: str = Field("gpt-4o-mini", env="OPENAI_CHAT_MODEL")
    openai_assistant_model: str = Field("gpt-4o", env="OPENAI_ASSISTANT_MODEL")
    openai_extraction_model: str = Field("gpt-4", env="OPENAI_EXTRACTION_MODEL")

    # Terrance assistant
    terrance_assistant_id: str = Field("asst_Ga8mogh1DSziZrbL3NXOwpnH", env="TERRANCE_ASSISTANT_ID")
    analytics_assistant_id: str = Field("", env="ANALYTICS_ASSISTANT_ID")
    terrance_vector_store_id: str = Field("vs_67ea2e5d37688191af7bf23e51536dc4", env="TERRANCE_VECTOR_STORE_ID")
    assistant_poll_interval: float = Field(1.0, env="ASSISTANT_POLL_INTERVAL")
    assistant_poll_timeout: float = Field(120.0, env="ASSISTANT_POLL_TIMEOUT")
    thread_cache_size: int = Field(10000, env="THREAD_CACHE_SIZE")

    # Firebase
    firebase_credentials_path: str = Field("firebase-service-account.json", env="FIREBASE_CREDENTIALS_PATH")
    firebase_storage_bucket: str = Field("", env="FIREBASE_STORAGE_BUCKET")

    # Document AI
    gcp_project_id: str = Field("", env="GCP_PROJECT_ID")
    gcp_location: str = Field("us", env="GCP_LOCATION")
    gcp_processor_id: str = Field("", env="GCP_PROCESSOR_ID")
    gcp_key_path: str = Field("client-docai.json", env="GCP_KEY_PATH")

    default_monthly_target: float = Field(10000, env="DEFAULT_MONTHLY_TARGET")
    log_level: str = Field("INFO", env="LOG_LEVEL")

    @property
    def processor_name(self) -> str:
        """Full Document AI processor path"""
        return f"projects/{self.gcp_project_id}/locations/{self.gcp_location}/processors/{self.gcp_processor_id}"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
