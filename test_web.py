#!/usr/bin/env python3
"""Tests for the Flask host and its socket events."""

import pytest

from watch_earn import web

from conftest import start_playing

@pytest.fixture
def client(make_controller, monkeypatch):
    controller = make_controller()
    monkeypatch.setattr(web, 'start_status_broadcast', lambda: None)
    web.set_controller(controller)
    yield web.app.test_client(), controller
    web.set_controller(None)

def test_index_serves_player(client):
    http, _ = client
    resp = http.get('/')
    assert resp.status_code == 200
    assert b'youtube-player' in resp.data

def test_status(client):
    http, _ = client
    data = http.get('/api/status').get_json()
    assert data['session']['video_id'] == 'vid1'
    assert data['button']['label'] == 'TAP TO SKIP'
    assert 'time' in data

def test_skip_is_posted_to_loop(client, loop):
    http, controller = client
    resp = http.post('/api/skip')
    assert resp.status_code == 202
    assert controller.session.video_id == 'vid1'
    loop.drain()
    assert controller.session.video_id == 'vid2'

def test_retry_is_posted_to_loop(client, loop):
    http, controller = client
    controller.on_load_timeout(controller.session)
    old = controller.session
    assert http.post('/api/retry').status_code == 202
    loop.drain()
    assert controller.session is not old
    assert controller.session.failure is None

def test_auto_skip_validation(client, loop):
    http, controller = client
    assert http.post('/api/auto-skip', json={'enabled': 'yes'}).status_code == 400
    assert http.post('/api/auto-skip', json={'enabled': False}).status_code == 200
    loop.drain()
    assert controller.auto_skip is False

def test_dismiss_notification(client):
    http, controller = client
    notification_id = controller.notifications.show_error('Oops', 'Failed')
    assert http.delete(f'/api/notifications/{notification_id}').status_code == 200
    assert http.delete(f'/api/notifications/{notification_id}').status_code == 404

def test_network_alert_cannot_be_dismissed(client):
    http, controller = client
    controller.network.report_failure()
    alert_id = controller.notifications.show_network_alert()
    resp = http.delete(f'/api/notifications/{alert_id}')
    assert resp.status_code == 409
    assert controller.notifications.offline
    assert controller.notifications.get(alert_id) is not None

def test_controls_without_controller():
    web.set_controller(None)
    http = web.app.test_client()
    assert http.post('/api/skip').status_code == 503
    assert http.delete('/api/notifications/n1').status_code == 503

def test_no_static_route():
    assert not web.app.has_static_folder
    assert 'static' not in [rule.endpoint for rule in web.app.url_map.iter_rules()]

def test_socket_events_reach_controller(client, loop):
    _, controller = client
    socket = web.socketio.test_client(web.app)
    token = controller.session.load_token

    socket.emit('host_focus', {'focused': True})
    socket.emit('bridge_message', {'type': 'bridgeReady', 'token': token})
    socket.emit('bridge_message', {'type': 'videoPlaying', 'token': token})
    loop.drain()

    assert controller.focused
    assert controller.session.bridge_ready
    assert controller.timer.is_running

    socket.emit('host_visibility', {'visible': False})
    loop.drain()
    assert not controller.foreground
    assert not controller.timer.is_running
    socket.disconnect()

def test_bridge_commands_are_emitted(client, loop):
    _, controller = client
    socket = web.socketio.test_client(web.app)
    web.emit_bridge_command({'type': 'playVideo', 'token': 't'})
    received = [m for m in socket.get_received() if m['name'] == 'bridge_command']
    assert received[0]['args'][0] == {'type': 'playVideo', 'token': 't'}
    socket.disconnect()

def test_status_updates_while_playing(client):
    _, controller = client
    start_playing(controller)
    controller.timer.tick()
    data = web.get_status_data()
    assert data['session']['watched_seconds'] == 1
