"""Unit tests for cookie encryption at rest."""

from frontend.vault import CookieVault, derive_key


def test_encrypted_differs_from_plaintext(valid_cookies):
    vault = CookieVault("secret")
    token = vault.encrypt(valid_cookies)
    assert valid_cookies not in token
    assert vault.decrypt(token) == valid_cookies


def test_wrong_secret_returns_empty(valid_cookies):
    token = CookieVault("secret").encrypt(valid_cookies)
    assert CookieVault("other").decrypt(token) == ""


def test_garbage_returns_empty():
    assert CookieVault("secret").decrypt("not-a-token") == ""


def test_env_secret(monkeypatch, valid_cookies):
    monkeypatch.setenv("COOKIE_ENCRYPTION_SECRET", "from-env")
    token = CookieVault().encrypt(valid_cookies)
    assert CookieVault("from-env").decrypt(token) == valid_cookies


def test_key_is_stable():
    assert derive_key("secret") == derive_key("secret")
    assert len(derive_key("secret")) == 44
