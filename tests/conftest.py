"""
Pytest configuration and fixtures for all tests.
"""

import os
import sys
from itertools import count

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from ezcompose import Address, Message


class RecordingTransport:
    """Transport double that records every call instead of talking to a relay."""

    def __init__(self, result=None, error=None):
        self.calls = []
        self.result = {} if result is None else result
        self.error = error

    def __call__(self, address, auth, sender, recipients, raw):
        self.calls.append({
            'address': address,
            'auth': auth,
            'sender': sender,
            'recipients': recipients,
            'raw': raw,
        })
        if self.error is not None:
            raise self.error
        return self.result


class CountingTokens:
    """Token factory returning token-1, token-2, ..."""

    def __init__(self):
        self._counter = count(1)
        self.issued = []

    def __call__(self):
        token = f"token-{next(self._counter)}"
        self.issued.append(token)
        return token


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def tokens():
    return CountingTokens()


@pytest.fixture
def message(tokens):
    """A message with a sender, one recipient and a subject."""
    return Message(
        sender=Address("sender@example.com", "Sender"),
        to=[Address("recipient@example.com")],
        subject="Test Subject",
        token_factory=tokens,
    )
