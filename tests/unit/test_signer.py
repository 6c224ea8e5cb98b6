"""Unit tests for SAPISIDHASH signing."""

import hashlib

import pytest

from backend.core.errors import CredentialError
from backend.core.signer import (
    GEMINI_ORIGIN,
    compute_digest,
    create_sapisid_hash,
    resolve_signing_token,
)

FROZEN = 1_700_000_000


class TestResolveToken:

    def test_prefers_sapisid(self, valid_cookies):
        assert resolve_signing_token(valid_cookies) == "sapisid-value"

    def test_falls_back_to_3psid(self):
        assert resolve_signing_token("__Secure-3PSID=three; __Secure-1PSID=one") == "three"

    def test_falls_back_to_1psid(self):
        assert resolve_signing_token("__Secure-1PSID=one; __Secure-1PSIDTS=ts") == "one"

    def test_missing_raises(self):
        with pytest.raises(CredentialError, match="SAPISID"):
            resolve_signing_token("__Secure-1PSIDTS=ts; NID=1")


class TestCreateHash:

    def test_format(self, valid_cookies):
        signature = create_sapisid_hash(valid_cookies, now=FROZEN)
        timestamp, digest = signature.split("_")
        assert timestamp == str(FROZEN)
        assert len(digest) == 40

    def test_digest_inputs(self, valid_cookies):
        expected = hashlib.sha1(f"{FROZEN} sapisid-value {GEMINI_ORIGIN}".encode()).hexdigest()
        assert create_sapisid_hash(valid_cookies, now=FROZEN) == f"{FROZEN}_{expected}"

    def test_deterministic_for_frozen_clock(self, valid_cookies):
        assert create_sapisid_hash(valid_cookies, now=FROZEN) == create_sapisid_hash(valid_cookies, now=FROZEN)

    def test_one_second_changes_digest(self, valid_cookies):
        first = create_sapisid_hash(valid_cookies, now=FROZEN).split("_")[1]
        second = create_sapisid_hash(valid_cookies, now=FROZEN + 1).split("_")[1]
        assert first != second

    def test_fractional_time_truncated(self, valid_cookies):
        assert create_sapisid_hash(valid_cookies, now=FROZEN + 0.9) == create_sapisid_hash(valid_cookies, now=FROZEN)

    def test_origin_mixed_in(self):
        assert compute_digest(FROZEN, "tok") != compute_digest(FROZEN, "tok", origin="https://example.com")

    def test_uses_current_clock(self, valid_cookies, mocker):
        mocker.patch("backend.core.signer.time").time.return_value = FROZEN
        assert create_sapisid_hash(valid_cookies).startswith(f"{FROZEN}_")

    def test_no_token_raises(self):
        with pytest.raises(CredentialError):
            create_sapisid_hash("", now=FROZEN)
