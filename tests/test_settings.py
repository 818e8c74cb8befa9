import json

import pytest

from services.settings import (
    AI_CONFIG_KEY,
    SHOP_CREDS_KEY,
    AiConfig,
    SettingsStore,
    ShopCredentials,
    settings_path,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "SHOPIFY_SHOP",
        "SHOPIFY_ACCESS_TOKEN",
        "GEMINI_API_KEY",
        "OPENAI_API_KEY",
        "OPENAI_MODEL",
        "WORKSPACE_SETTINGS_FILE",
    ):
        monkeypatch.delenv(name, raising=False)


def test_credentials_are_sanitized():
    creds = ShopCredentials(shop=" https://shop.example/ ", token=" tok ")
    assert creds.to_dict() == {"shop": "shop.example", "token": "tok"}
    assert creds.complete


def test_round_trip_uses_fixed_keys(tmp_path):
    store = SettingsStore(tmp_path / "settings.json")
    store.save_credentials(ShopCredentials(shop="shop.example", token="tok"))
    store.save_ai_config(AiConfig(provider="openai", openai_key="sk", brand_terms=["Acme"]))

    data = json.loads((tmp_path / "settings.json").read_text(encoding="utf-8"))
    assert set(data) == {SHOP_CREDS_KEY, AI_CONFIG_KEY}
    assert data[AI_CONFIG_KEY]["openAiKey"] == "sk"

    assert store.load_credentials() == ShopCredentials(shop="shop.example", token="tok")
    loaded = store.load_ai_config()
    assert loaded.provider == "openai"
    assert loaded.brand_terms == ["Acme"]


def test_auto_connect_requires_shop_and_token(tmp_path):
    store = SettingsStore(tmp_path / "settings.json")
    assert not store.should_auto_connect()

    store.save_credentials(ShopCredentials(shop="shop.example", token=""))
    assert not store.should_auto_connect()

    store.save_credentials(ShopCredentials(shop="shop.example", token="tok"))
    assert store.should_auto_connect()


def test_env_defaults_fill_missing_values(tmp_path, monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "env-key")
    monkeypatch.setenv("SHOPIFY_SHOP", "env.example")
    store = SettingsStore(tmp_path / "settings.json")

    assert store.load_credentials().shop == "env.example"

    store.save_ai_config(AiConfig(gemini_key=""))
    assert store.load_ai_config().gemini_key == "env-key"


def test_unreadable_file_is_ignored(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")

    assert SettingsStore(path).load_ai_config() == AiConfig()


def test_settings_path_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv("WORKSPACE_SETTINGS_FILE", str(tmp_path / "x.json"))
    assert settings_path() == tmp_path / "x.json"
    assert SettingsStore().path == tmp_path / "x.json"
