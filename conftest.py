"""Shared fixtures: a synchronous executor, a recording transport and a fake backend."""

import os
import sys
from concurrent.futures import Executor, Future

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from watch_earn.backend import ClaimResult
from watch_earn.controller import PlaybackController
from watch_earn.loop import EventLoop

class ImmediateExecutor(Executor):
    """Runs submitted work inline and hands back an already finished future."""

    def __init__(self):
        self.submitted = []

    def submit(self, fn, *args, **kwargs):
        self.submitted.append((fn, args))
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future

class RecordingTransport:
    """Stands in for the socket that carries commands to the embed page."""

    def __init__(self):
        self.messages = []

    def __call__(self, message):
        self.messages.append(message)

    def types(self):
        return [m['type'] for m in self.messages]

class FakeBackend:
    """In-memory backend with scripted claim outcomes."""

    def __init__(self, rows=None):
        self.rows = list(rows or [])
        self.claims = []
        self.claim_error = None
        self.claim_result = ClaimResult(success=True)
        self.fetch_error = None
        self.fetch_calls = 0
        self.coins = 100

    def claim_reward(self, user_id, video_id, watched_seconds, is_auto_skip):
        self.claims.append((user_id, video_id, watched_seconds, is_auto_skip))
        if self.claim_error is not None:
            raise self.claim_error
        return self.claim_result

    def fetch_queue(self, user_id, limit=None):
        self.fetch_calls += 1
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.rows)

    def refresh_balance(self, user_id):
        return self.coins

def make_row(video_id, duration=30, reward=10, **extra):
    row = {
        'video_id': video_id,
        'youtube_url': f"https://youtu.be/{video_id.ljust(11, 'x')}",
        'title': f"Video {video_id}",
        'duration_seconds': duration,
        'coin_reward': reward,
        'status': 'active',
        'views_count': 0,
        'target_views': 100,
        'created_at': '2024-01-01T00:00:00Z',
    }
    row.update(extra)
    return row

@pytest.fixture
def loop():
    return EventLoop()

@pytest.fixture
def executor():
    return ImmediateExecutor()

@pytest.fixture
def transport():
    return RecordingTransport()

@pytest.fixture
def backend():
    return FakeBackend([make_row('vid1', duration=30), make_row('vid2', duration=20), make_row('vid3', duration=10)])

@pytest.fixture
def make_controller(loop, executor, transport, backend):
    def factory(**kwargs):
        kwargs.setdefault('auto_skip', True)
        kwargs.setdefault('auto_skip_unavailable', False)
        controller = PlaybackController(backend, transport, loop=loop, executor=executor, **kwargs)
        controller.start('user-1')
        loop.drain()
        return controller
    return factory

def post(controller, message_type, **data):
    """Deliver an embed message for the current load."""
    message = {'type': message_type, 'token': controller.session.load_token}
    message.update(data)
    return controller.bridge.handle_message(message)

def start_playing(controller):
    """Focus the host and walk the embed through ready, loaded and playing."""
    controller.set_focus(True)
    post(controller, 'bridgeReady')
    post(controller, 'videoLoaded')
    post(controller, 'videoPlaying')
