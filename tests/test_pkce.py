"""Tests for PKCE and state generation."""

import re
from unittest.mock import patch

import pytest

from x_yapper.pkce import (
    PKCEMaterial,
    generate_code_challenge,
    generate_code_verifier,
    generate_random_string,
    generate_state,
)

_ALPHANUMERIC = re.compile(r"^[A-Za-z0-9]*$")


class TestRandomString:
    def test_length_and_charset(self) -> None:
        value = generate_random_string(64)
        assert len(value) == 64
        assert _ALPHANUMERIC.match(value)

    def test_zero_length(self) -> None:
        assert generate_random_string(0) == ""

    def test_negative_length_rejected(self) -> None:
        with pytest.raises(ValueError):
            generate_random_string(-1)

    def test_bytes_reduced_modulo_charset(self) -> None:
        with patch("x_yapper.pkce.secrets.token_bytes", return_value=bytes([0, 61, 62, 255])):
            # 62 wraps to 'a'; 255 % 62 == 7 -> 'h'
            assert generate_random_string(4) == "a9ah"

    def test_randomness_failure_propagates(self) -> None:
        with patch("x_yapper.pkce.secrets.token_bytes", side_effect=OSError("no entropy")):
            with pytest.raises(OSError):
                generate_random_string(8)


class TestVerifierAndState:
    def test_verifier_is_128_chars(self) -> None:
        verifier = generate_code_verifier()
        assert len(verifier) == 128
        assert _ALPHANUMERIC.match(verifier)

    def test_state_is_32_chars(self) -> None:
        state = generate_state()
        assert len(state) == 32
        assert _ALPHANUMERIC.match(state)

    def test_values_differ_between_calls(self) -> None:
        assert generate_code_verifier() != generate_code_verifier()


class TestCodeChallenge:
    def test_rfc7636_appendix_b_vector(self) -> None:
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
        assert generate_code_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"

    def test_no_padding_and_urlsafe(self) -> None:
        challenge = generate_code_challenge(generate_code_verifier())
        assert len(challenge) == 43
        assert "=" not in challenge
        assert "+" not in challenge and "/" not in challenge


class TestPKCEMaterial:
    def test_challenge_matches_verifier(self) -> None:
        material = PKCEMaterial.generate()
        assert material.challenge == generate_code_challenge(material.verifier)
        assert len(material.state) == 32
