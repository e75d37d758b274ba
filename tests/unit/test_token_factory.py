"""Tests for session_tokens.tokens.factory — token generation and kinds."""
from __future__ import annotations

import itertools
import uuid

import pytest

from session_tokens.tokens.factory import SESSION_PREFIX, Token, TokenFactory, TokenKind


@pytest.fixture()
def factory() -> TokenFactory:
    return TokenFactory()


def _counter_factory() -> TokenFactory:
    counter = itertools.count(1)
    return TokenFactory(generator=lambda: f"id{next(counter)}")


class TestTokenKind:
    def test_session_prefix_yields_session_token(self, factory: TokenFactory) -> None:
        token = factory.create_token(SESSION_PREFIX)
        assert token.kind is TokenKind.SESSION
        assert token.is_session

    def test_no_prefix_yields_transition_token(self, factory: TokenFactory) -> None:
        token = factory.create_token()
        assert token.kind is TokenKind.TRANSITION
        assert not token.is_session

    def test_other_prefix_yields_transition_token(self, factory: TokenFactory) -> None:
        token = factory.create_token("transition-")
        assert token.kind is TokenKind.TRANSITION
        assert token.value.startswith("transition-")

    def test_kind_is_not_rederived_from_string(self) -> None:
        # A transition token whose generated part happens to look like a session
        # token keeps the kind it was created with.
        factory = TokenFactory(generator=lambda: SESSION_PREFIX + "x")
        token = factory.create_token()
        assert token.value.startswith(SESSION_PREFIX)
        assert token.kind is TokenKind.TRANSITION

    def test_create_session_token_shorthand(self, factory: TokenFactory) -> None:
        token = factory.create_session_token()
        assert token.kind is TokenKind.SESSION
        assert token.value.startswith(SESSION_PREFIX)


class TestTokenGeneration:
    def test_default_identifier_is_uuid4(self, factory: TokenFactory) -> None:
        token = factory.create_token()
        parsed = uuid.UUID(token.value)
        assert parsed.version == 4

    def test_prefix_is_prepended(self, factory: TokenFactory) -> None:
        token = factory.create_token(SESSION_PREFIX)
        suffix = token.value[len(SESSION_PREFIX):]
        assert uuid.UUID(suffix).version == 4

    def test_tokens_are_unique(self, factory: TokenFactory) -> None:
        tokens = {factory.create_token().value for _ in range(500)}
        assert len(tokens) == 500

    def test_injected_generator_is_deterministic(self) -> None:
        factory = _counter_factory()
        assert factory.create_token().value == "id1"
        assert factory.create_token("t-").value == "t-id2"

    def test_str_returns_value(self) -> None:
        token = Token(value="abc", kind=TokenKind.TRANSITION)
        assert str(token) == "abc"

    def test_token_is_immutable(self) -> None:
        token = Token(value="abc", kind=TokenKind.TRANSITION)
        with pytest.raises(AttributeError):
            token.value = "other"  # type: ignore[misc]
