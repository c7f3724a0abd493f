import json

import pytest
from pydantic import SecretStr

from narrator.services.credentials import CREDENTIAL_KEY, CredentialStore, mask_key


def test_missing_when_nothing_configured(tmp_path):
    store = CredentialStore(tmp_path / "credentials.json")

    assert store.resolve() is None
    assert store.source() == "missing"


def test_environment_fallback(tmp_path):
    store = CredentialStore(tmp_path / "credentials.json", fallback=SecretStr("env-key"))

    assert store.resolve() == "env-key"
    assert store.source() == "environment"


def test_stored_key_wins_over_environment(tmp_path):
    path = tmp_path / "nested" / "credentials.json"
    store = CredentialStore(path, fallback=SecretStr("env-key"))

    store.save("  stored-key  ")

    assert store.resolve() == "stored-key"
    assert store.source() == "stored"
    assert json.loads(path.read_text(encoding="utf-8")) == {CREDENTIAL_KEY: "stored-key"}


def test_saved_key_survives_a_new_store(tmp_path):
    path = tmp_path / "credentials.json"
    CredentialStore(path).save("persisted")

    assert CredentialStore(path).get_stored() == "persisted"


def test_clear_removes_stored_key(tmp_path):
    path = tmp_path / "credentials.json"
    store = CredentialStore(path, fallback=SecretStr("env-key"))
    store.save("stored-key")

    assert store.clear() is True
    assert not path.exists()
    assert store.resolve() == "env-key"
    assert store.clear() is False


def test_empty_key_is_rejected(tmp_path):
    store = CredentialStore(tmp_path / "credentials.json")

    with pytest.raises(ValueError):
        store.save("   ")


def test_corrupt_file_is_treated_as_missing(tmp_path):
    path = tmp_path / "credentials.json"
    path.write_text("{not json", encoding="utf-8")

    assert CredentialStore(path).resolve() is None


def test_mask_key():
    assert mask_key(None) is None
    assert mask_key("abcdef1234") == "…1234"
    assert mask_key("abc") == "…"
