"""Message bridge to the embedded video player."""

import json
import logging
from typing import Any, Callable, Dict, List, Optional

import schedule

from .config import config
from .exceptions import BridgeProtocolError
from .loop import EventLoop
from .models import BridgeCommand, BridgeEvent, BridgeEventType, PlayerState, UNAVAILABLE_ERROR_CODES
from .models.events import INBOUND_ALIASES, POSITION_MESSAGE

logger = logging.getLogger(__name__)

Listener = Callable[[BridgeEvent], None]

class EmbeddedPlayerBridge:
    """Talks to a third-party player running in an isolated page.

    Commands go out through ``transport`` as ``{"type": ...}`` dicts; raw
    messages from the page come in through ``handle_message`` and leave as
    ``BridgeEvent`` objects. Nothing the page sends can raise past this class.
    """

    def __init__(
        self,
        loop: EventLoop,
        transport: Callable[[Dict[str, Any]], None],
        poll_interval: Optional[float] = None,
        stall_epsilon: Optional[float] = None,
        position_source: Optional[Callable[[], Optional[float]]] = None,
    ):
        self.loop = loop
        self.transport = transport
        self.poll_interval = poll_interval or config.STALL_POLL_INTERVAL
        self.stall_epsilon = config.STALL_EPSILON if stall_epsilon is None else stall_epsilon
        self.position_source = position_source or (lambda: self._position)

        self._listeners: List[Listener] = []
        self._token: Optional[str] = None
        self._reset()

    def _reset(self):
        self.ready = False
        self.loaded = False
        self.state = PlayerState.UNSTARTED
        self._pending: Optional[BridgeCommand] = None
        self._detached = False
        self._terminal = False
        self._position: Optional[float] = None
        self._last_polled: Optional[float] = None
        self._stalled = False
        self._poll_job: Optional[schedule.Job] = None

    def subscribe(self, listener: Listener):
        self._listeners.append(listener)

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def stalled(self) -> bool:
        return self._stalled

    # Lifecycle --------------------------------------------------------

    def load(self, source_id: str, token: str):
        """Point the embed at a new video. Events from older loads are dropped."""
        self._stop_monitoring()
        self._reset()
        self._token = token
        self.state = PlayerState.LOADING

        if not source_id:
            logger.warning(f"No playable source for load {token} - marking unavailable")
            self._dispatch(BridgeEvent(BridgeEventType.VIDEO_UNAVAILABLE, synthetic=True))
            return

        logger.info(f"Loading embed video {source_id} ({token})")
        self.transport({'type': BridgeCommand.LOAD_VIDEO.value, 'videoId': source_id, 'token': token})

    def detach(self):
        """Stop talking to the embed for the current load."""
        self._stop_monitoring()
        self._detached = True
        self._terminal = True
        self._pending = None

    def unload(self):
        self.detach()
        self._token = None

    # Outbound ---------------------------------------------------------

    def send(self, command: BridgeCommand) -> bool:
        """Send a command; returns False when it could not go out yet."""
        if self._detached or self._token is None:
            logger.debug(f"Dropping {command.value}: bridge detached")
            return False

        if not self.ready:
            if command in (BridgeCommand.PLAY_VIDEO, BridgeCommand.PAUSE_VIDEO):
                logger.debug(f"Embed not ready, holding {command.value} until it is")
                self._pending = command
            return False

        self._pending = None
        self.transport({'type': command.value, 'token': self._token})
        return True

    def _flush_pending(self):
        if self._pending is not None:
            command = self._pending
            self._pending = None
            logger.info(f"Embed ready, sending held {command.value}")
            self.send(command)

    # Inbound ----------------------------------------------------------

    def handle_message(self, raw: Any) -> Optional[BridgeEvent]:
        """Translate one raw embed message. Returns the emitted event, if any."""
        try:
            message = self._parse(raw)
        except BridgeProtocolError as e:
            logger.warning(f"Ignoring embed message: {e}")
            return None

        token = message.get('token')
        if self._token is None or (token is not None and token != self._token):
            logger.debug(f"Dropping stale embed message {message.get('type')} ({token})")
            return None

        message_type = message['type']
        if message_type == POSITION_MESSAGE:
            self._record_position(message.get('currentTime'))
            return None

        event_type = INBOUND_ALIASES.get(message_type)
        if event_type is None:
            try:
                event_type = BridgeEventType(message_type)
            except ValueError:
                logger.warning(f"Unknown embed message type: {message_type}")
                return None

        if self._terminal:
            logger.debug(f"Ignoring {message_type}: load already unavailable")
            return None

        error_code = None
        if event_type == BridgeEventType.VIDEO_ERROR:
            error_code = self._error_code(message.get('errorCode'))
            if error_code in UNAVAILABLE_ERROR_CODES:
                event_type = BridgeEventType.VIDEO_UNAVAILABLE

        return self._dispatch(BridgeEvent(event_type, error_code=error_code))

    def _parse(self, raw: Any) -> Dict[str, Any]:
        if isinstance(raw, (str, bytes)):
            try:
                raw = json.loads(raw)
            except ValueError as e:
                raise BridgeProtocolError(f"invalid JSON: {e}") from e
        if not isinstance(raw, dict):
            raise BridgeProtocolError(f"expected an object, got {type(raw).__name__}")
        if not isinstance(raw.get('type'), str):
            raise BridgeProtocolError("missing 'type'")
        return raw

    @staticmethod
    def _error_code(value: Any) -> Optional[int]:
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    def _record_position(self, value: Any):
        try:
            self._position = float(value)
        except (TypeError, ValueError):
            logger.debug(f"Ignoring bad position report: {value!r}")

    def _dispatch(self, event: BridgeEvent) -> Optional[BridgeEvent]:
        if event.type == BridgeEventType.BRIDGE_READY:
            if self.ready:
                return None
            self.ready = True
            logger.info("🌐 Embed bridge ready")
            self._emit(event)
            self._flush_pending()
            return event

        if event.type == BridgeEventType.VIDEO_LOADED:
            if self.loaded:
                return None
            self.loaded = True
            self._emit(event)
            return event

        new_state = event.player_state
        if new_state == self.state and event.type != BridgeEventType.VIDEO_ERROR:
            return None
        if self._stalled and new_state == PlayerState.BUFFERING:
            # The embed caught up with a stall we already reported
            self.state = new_state
            self._stop_monitoring()
            return None

        self.state = new_state
        if new_state == PlayerState.PLAYING:
            self._start_monitoring()
        else:
            self._stop_monitoring()
        if new_state == PlayerState.UNAVAILABLE:
            self._terminal = True

        self._emit(event)
        return event

    def _emit(self, event: BridgeEvent):
        logger.debug(f"📨 Bridge event: {event.type.value}")
        for listener in list(self._listeners):
            listener(event)

    # Stall detection --------------------------------------------------

    def _start_monitoring(self):
        if self._poll_job is not None:
            return
        self._stalled = False
        self._last_polled = self.position_source()
        self._poll_job = self.loop.every(self.poll_interval, self.check_progress)

    def _stop_monitoring(self):
        if self._poll_job is not None:
            self.loop.cancel(self._poll_job)
            self._poll_job = None
        self._stalled = False

    def check_progress(self):
        """Poll the reported position and flag playback that is not moving.

        Only one ``videoBuffering`` is emitted per stall; ``videoPlaying``
        follows once the position moves again.
        """
        if self.state != PlayerState.PLAYING or self._terminal:
            return

        current = self.position_source()
        if current is None:
            return
        if self._last_polled is None:
            self._last_polled = current
            return

        if abs(current - self._last_polled) <= self.stall_epsilon:
            if not self._stalled:
                logger.info(f"🔍 Playback stalled at {current:.1f}s although the embed reports playing")
                self._stalled = True
                self._emit(BridgeEvent(BridgeEventType.VIDEO_BUFFERING, synthetic=True))
        else:
            if self._stalled:
                logger.info("🔍 Playback progressing again after stall")
                self._stalled = False
                self._emit(BridgeEvent(BridgeEventType.VIDEO_PLAYING, synthetic=True))
            self._last_polled = current
