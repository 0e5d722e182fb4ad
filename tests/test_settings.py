from notewright.config.settings import load_settings
from notewright.core.services import build_services


def test_missing_key_means_offline(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "")
    monkeypatch.setenv("NOTEWRIGHT_DB_PATH", str(tmp_path / "data" / "nw.db"))
    settings = load_settings()

    assert settings.offline is True
    assert settings.db_path == str(tmp_path / "data" / "nw.db")
    assert (tmp_path / "data").is_dir()


def test_numeric_knobs_are_clamped(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("NOTEWRIGHT_DB_PATH", str(tmp_path / "nw.db"))
    monkeypatch.setenv("NOTEWRIGHT_GENERATION_MAX_ATTEMPTS", "9")
    monkeypatch.setenv("NOTEWRIGHT_RETRY_BASE_SECONDS", "-1")
    monkeypatch.setenv("OPENAI_TIMEOUT_SECONDS", "abc")
    settings = load_settings()

    assert settings.generation_max_attempts == 3
    assert settings.retry_base_seconds == 2.0
    assert settings.openai_timeout_seconds == 60.0


def test_prompt_pins_reach_the_registry(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "")
    monkeypatch.setenv("NOTEWRIGHT_DB_PATH", str(tmp_path / "nw.db"))
    monkeypatch.setenv("NOTEWRIGHT_WRITING_PROMPT", "v1")
    monkeypatch.delenv("NOTEWRIGHT_INTERVIEW_PROMPT", raising=False)

    services = build_services(load_settings())

    assert services.generator.name == "offline"
    assert services.registry.current("writing").id == "v1"
    assert services.registry.current("interview").id == "v2"
    assert services.engine.retry.max_attempts == 3
