"""Tests for YAML settings loading."""

from FlexResearch.config import DEFAULT_PURPOSES, Settings, SettingsLoader, get_settings


def test_defaults_without_file(tmp_path):
    settings = Settings(tmp_path / "missing.yaml")

    assert settings.admission.max_requests == 10
    assert settings.admission.window_seconds == 60.0
    assert settings.batch.mode == "concurrent"
    assert settings.batch.inter_slice_pause == 2.0
    assert settings.completion.rate_limit_backoff == 5.0
    assert settings.purposes == DEFAULT_PURPOSES


def test_yaml_overrides(tmp_path, monkeypatch):
    monkeypatch.delenv("FLEXRESEARCH_BACKEND", raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(
        "admission:\n"
        "  max_requests: 5\n"
        "  window_seconds: 30\n"
        "completion:\n"
        "  backend: openai:gpt-4o\n"
        "model_parameters:\n"
        "  research:\n"
        "    max_tokens: 6000\n"
        "unknown_section: {}\n"
    )

    settings = Settings(path)

    assert settings.admission.max_requests == 5
    assert settings.admission.window_seconds == 30.0
    assert settings.completion.backend == "openai:gpt-4o"
    assert settings.purpose("research").max_tokens == 6000
    assert settings.purpose("research").temperature == 0.7
    assert settings.get_raw_config()["unknown_section"] == {}


def test_env_overrides_backend_and_path(tmp_path, monkeypatch):
    path = tmp_path / "custom.yaml"
    path.write_text("batch:\n  max_concurrent: 7\n")
    monkeypatch.setenv("FLEXRESEARCH_CONFIG", str(path))
    monkeypatch.setenv("FLEXRESEARCH_BACKEND", "anthropic:claude-haiku-4-5")

    settings = get_settings()

    assert settings.batch.max_concurrent == 7
    assert settings.completion.backend == "anthropic:claude-haiku-4-5"
    assert get_settings() is settings
    SettingsLoader.reset()
    assert get_settings() is not settings
