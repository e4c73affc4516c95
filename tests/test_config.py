"""Unit tests for kbchat/config.py."""

from kbchat.config import Settings, settings


def _defaults(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestSettingsDefaults:
    """Verify all default values are set correctly."""

    def test_openai_api_key_default_empty(self):
        s = _defaults(openai_api_key="")
        assert s.openai_api_key == ""

    def test_openai_chat_model(self):
        assert _defaults().openai_chat_model == "gpt-4o-mini"

    def test_openai_base_url(self):
        assert _defaults().openai_base_url == "https://api.openai.com/v1"

    def test_vector_store_name(self):
        assert _defaults().vector_store_name == "Company Knowledge Base (Multi-File)"

    def test_vector_store_id_file(self):
        assert _defaults().vector_store_id_file == ".vector-store-id"

    def test_knowledge_base_dir(self):
        s = _defaults()
        assert s.public_dir == "./public"
        assert s.knowledge_base_dir == "./public/knowledge-base"

    def test_polling_budget(self):
        s = _defaults()
        assert s.init_poll_max_attempts == 120
        assert s.init_poll_interval_seconds == 2.0
        assert s.client_poll_max_attempts == 120
        assert s.client_poll_interval_seconds == 2.0

    def test_default_citation_off(self):
        s = _defaults()
        assert s.default_citation_enabled is False
        assert s.citation_fallback_documents == []


class TestSettingsOverrides:
    """Verify settings can be overridden via constructor and environment."""

    def test_override_poll_attempts(self):
        assert _defaults(init_poll_max_attempts=10).init_poll_max_attempts == 10

    def test_override_model(self):
        assert _defaults(openai_chat_model="gpt-4o").openai_chat_model == "gpt-4o"

    def test_vector_store_id_from_environment(self, monkeypatch):
        monkeypatch.setenv("VECTOR_STORE_ID", "vs_env")
        assert _defaults().vector_store_id == "vs_env"

    def test_list_from_environment(self, monkeypatch):
        monkeypatch.setenv("CITATION_FALLBACK_DOCUMENTS", '["manual.pdf"]')
        assert _defaults().citation_fallback_documents == ["manual.pdf"]


class TestModuleLevelSingleton:
    """The module-level `settings` object should be a valid Settings instance."""

    def test_settings_is_instance(self):
        assert isinstance(settings, Settings)

    def test_settings_has_all_fields(self):
        assert hasattr(settings, "openai_api_key")
        assert hasattr(settings, "vector_store_id")
        assert hasattr(settings, "knowledge_base_dir")
        assert hasattr(settings, "widget_api_url")
