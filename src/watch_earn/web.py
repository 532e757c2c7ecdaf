"""Flask host for the embedded player page and the controller API."""

import logging
import threading
import time as time_module
from datetime import datetime
from typing import Any, Dict

from flask import Flask, jsonify, render_template, request
from flask_cors import CORS
from flask_socketio import SocketIO, emit

from .config import config

# Initialize Flask app
app = Flask(__name__)
app.config['SECRET_KEY'] = config.SECRET_KEY
CORS(app)
socketio = SocketIO(app, cors_allowed_origins="*")

# Global reference to the controller (set by app.py)
_controller = None
_status_broadcast_thread = None
_status_broadcast_running = False

logger = logging.getLogger(__name__)

def set_controller(controller):
    """Set the controller the routes and socket events talk to."""
    global _controller
    _controller = controller

def emit_bridge_command(message: Dict[str, Any]):
    """Transport for the embed bridge: push a command to the player page."""
    socketio.emit('bridge_command', message)

def _post(name: str, *args) -> bool:
    """Hand a controller call to its loop thread."""
    if _controller is None:
        return False
    _controller.loop.call_soon(getattr(_controller, name), *args)
    return True

def get_status_data():
    """Get current status data for broadcasting."""
    status = _controller.status() if _controller else {'session': None}
    status['time'] = datetime.now().isoformat()
    return status

def status_broadcast_worker():
    """Background thread that broadcasts status every second."""
    global _status_broadcast_running

    logger.info("Starting status broadcast worker")

    while _status_broadcast_running:
        try:
            socketio.emit('status_update', get_status_data())
        except Exception as e:
            logger.error(f"Error broadcasting status: {e}")

        time_module.sleep(1)

    logger.info("Status broadcast worker stopped")

def start_status_broadcast():
    """Start the status broadcast background thread."""
    global _status_broadcast_thread, _status_broadcast_running

    if not _status_broadcast_running:
        _status_broadcast_running = True
        _status_broadcast_thread = threading.Thread(target=status_broadcast_worker, daemon=True)
        _status_broadcast_thread.start()
        logger.info("Status broadcast started")

def stop_status_broadcast():
    """Stop the status broadcast background thread."""
    global _status_broadcast_running

    if _status_broadcast_running:
        _status_broadcast_running = False
        logger.info("Status broadcast stopped")

@app.route('/')
def index():
    """Player page hosting the embed."""
    return render_template('player.html')

@app.route('/api/status')
def get_status():
    """Get current session, queue and balance status."""
    return jsonify(get_status_data())

# Controls
@app.route('/api/skip', methods=['POST'])
def skip_video():
    """Skip / earn button."""
    if not _post('skip'):
        return jsonify({'error': 'Controller not running'}), 503
    return jsonify({'message': 'Skip requested'}), 202

@app.route('/api/retry', methods=['POST'])
def retry():
    """Retry a failed claim or reload a broken video."""
    if not _post('retry'):
        return jsonify({'error': 'Controller not running'}), 503
    return jsonify({'message': 'Retry requested'}), 202

@app.route('/api/auto-skip', methods=['POST'])
def set_auto_skip():
    """Turn auto-skip on or off."""
    data = request.get_json(silent=True)
    if not data or not isinstance(data.get('enabled'), bool):
        return jsonify({'error': 'Missing boolean field: enabled'}), 400
    if not _post('set_auto_skip', data['enabled'], bool(data.get('persist', False))):
        return jsonify({'error': 'Controller not running'}), 503
    return jsonify({'message': f"Auto-skip {'enabled' if data['enabled'] else 'disabled'}"})

@app.route('/api/notifications/<notification_id>', methods=['DELETE'])
def dismiss_notification(notification_id):
    """Dismiss a notification."""
    if _controller is None:
        return jsonify({'error': 'Controller not running'}), 503
    notification = _controller.notifications.get(notification_id)
    if notification is None:
        return jsonify({'error': 'Notification not found'}), 404
    if notification.persistent:
        return jsonify({'error': 'Notification cannot be dismissed'}), 409
    if not _controller.notifications.dismiss(notification_id):
        return jsonify({'error': 'Notification not found'}), 404
    return jsonify({'message': 'Notification dismissed'})

# WebSocket events
@socketio.on('connect')
def handle_connect():
    """Handle player page connection."""
    logger.info("Client connected")
    emit('connected', {'message': 'Connected to Watch & Earn'})

    # Start status broadcasting when first client connects
    start_status_broadcast()

@socketio.on('request_status')
def handle_status_request():
    """Handle status request."""
    emit('status_update', get_status_data())

@socketio.on('bridge_message')
def handle_bridge_message(data):
    """Message posted by the embedded player."""
    if _controller is not None:
        _controller.loop.call_soon(_controller.bridge.handle_message, data)

@socketio.on('host_focus')
def handle_host_focus(data):
    """Player screen gained or lost focus."""
    _post('set_focus', bool((data or {}).get('focused')))

@socketio.on('host_visibility')
def handle_host_visibility(data):
    """Page moved to the foreground or background."""
    _post('set_foreground', bool((data or {}).get('visible')))
