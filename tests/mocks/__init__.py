"""Test doubles for native playback libraries."""

from tests.mocks.vlc_mock import MockEventType, MockInstance, MockMediaPlayer

__all__ = ['MockEventType', 'MockInstance', 'MockMediaPlayer']
