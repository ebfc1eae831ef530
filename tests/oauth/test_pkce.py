"""Tests for PKCE verifier and challenge generation."""

from __future__ import annotations

import re

import pytest

from caldav_cli.oauth.pkce import (
    VERIFIER_LENGTH,
    derive_challenge,
    generate_pkce_challenge,
    generate_verifier,
)

pytestmark = pytest.mark.unit

_UNRESERVED = re.compile(r"^[A-Za-z0-9\-._~]+$")


class TestGenerateVerifier:
    def test_default_length_and_alphabet(self):
        verifier = generate_verifier()
        assert len(verifier) == VERIFIER_LENGTH == 128
        assert _UNRESERVED.match(verifier)

    def test_verifiers_are_unique(self):
        assert len({generate_verifier() for _ in range(50)}) == 50

    @pytest.mark.parametrize("length", [43, 64, 128])
    def test_custom_length(self, length):
        assert len(generate_verifier(length)) == length

    @pytest.mark.parametrize("length", [42, 129, 0])
    def test_rejects_out_of_range_length(self, length):
        with pytest.raises(ValueError):
            generate_verifier(length)


class TestDeriveChallenge:
    def test_rfc7636_appendix_b_vector(self):
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
        assert derive_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"

    def test_deterministic_and_unpadded(self):
        verifier = generate_verifier()
        challenge = derive_challenge(verifier)
        assert challenge == derive_challenge(verifier)
        assert "=" not in challenge
        assert len(challenge) == 43


class TestGeneratePkceChallenge:
    def test_pair_is_consistent(self):
        pkce = generate_pkce_challenge()
        assert pkce.method == "S256"
        assert pkce.challenge == derive_challenge(pkce.verifier)

    def test_repr_hides_verifier(self):
        pkce = generate_pkce_challenge()
        assert pkce.verifier not in repr(pkce)
        assert pkce.verifier not in str(pkce)
