from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_chat_model: str = "gpt-4o-mini"
    request_timeout_seconds: float = 120.0

    # Collection id fallback chain: VECTOR_STORE_ID > process memory > file.
    vector_store_id: str = ""
    vector_store_name: str = "Company Knowledge Base (Multi-File)"
    vector_store_id_file: str = ".vector-store-id"
    discovery_list_limit: int = 50

    public_dir: str = "./public"
    knowledge_base_dir: str = "./public/knowledge-base"
    fallback_documents: list[str] = [
        "Retailer_Roleplay_Knowledge_Base_Atomberg.pdf",
        "Knowledge Base.pdf",
    ]

    init_poll_max_attempts: int = 120
    init_poll_interval_seconds: float = 2.0
    client_poll_max_attempts: int = 120
    client_poll_interval_seconds: float = 2.0
    poll_backoff_factor: float = 1.0
    poll_max_interval_seconds: float = 10.0

    citation_fallback_documents: list[str] = []
    citation_chars_per_page: int = 0
    default_citation_enabled: bool = False
    default_citation_file: str = ""
    default_citation_page: int = 1

    widget_api_url: str = "http://localhost:8000"
    log_level: str = "INFO"

    model_config = {"env_file": ".env"}


settings = Settings()
