"""Single application entry point that runs the playback loop and web host."""

import logging
import sys
import threading
from concurrent.futures import ThreadPoolExecutor

from .backend import BackendClient
from .config import config
from .controller import PlaybackController
from .loop import EventLoop
from .web import app, emit_bridge_command, set_controller, socketio, start_status_broadcast, stop_status_broadcast
from .youtube import YouTubeResolver

logger = logging.getLogger(__name__)

def setup_logging():
    """Setup logging configuration."""
    config.ensure_directories()

    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(config.LOG_FILE),
            logging.StreamHandler(sys.stdout)
        ]
    )

class WatchEarnApp:
    """Main application that runs the playback loop and the web host."""

    def __init__(self):
        self.loop = None
        self.executor = None
        self.controller = None
        self.loop_thread = None

    def setup(self):
        """Build the controller and its collaborators."""
        setup_logging()
        logger.info("Starting Watch & Earn")
        logger.info(f"Backend: {config.BACKEND_URL}")

        if not config.USER_ID:
            logger.warning("USER_ID is not set, the queue cannot be loaded until it is")

        self.loop = EventLoop()
        self.executor = ThreadPoolExecutor(max_workers=config.WORKER_THREADS, thread_name_prefix="watch-earn")
        self.controller = PlaybackController(
            BackendClient(),
            emit_bridge_command,
            loop=self.loop,
            executor=self.executor,
            resolver=YouTubeResolver(),
        )

        # Share the controller with the web host
        set_controller(self.controller)

    def run_loop(self):
        """Run the playback loop in a separate thread."""
        logger.info("Starting playback loop thread")
        try:
            self.loop.call_soon(self.controller.start, config.USER_ID)
            self.loop.run_forever()
        except Exception as e:
            logger.error(f"Playback loop crashed: {e}")

    def start_loop_thread(self):
        """Start the playback loop in a background thread."""
        self.loop_thread = threading.Thread(target=self.run_loop, daemon=True)
        self.loop_thread.start()

    def run(self):
        """Run the complete application."""
        try:
            self.setup()

            logger.info(f"Starting web server on {config.FLASK_HOST}:{config.FLASK_PORT}")
            self.start_loop_thread()
            start_status_broadcast()

            socketio.run(
                app,
                host=config.FLASK_HOST,
                port=config.FLASK_PORT,
                debug=config.DEBUG,
                use_reloader=False,
                allow_unsafe_werkzeug=True
            )

        except KeyboardInterrupt:
            logger.info("Watch & Earn stopped by user")
        except Exception as e:
            logger.error(f"Watch & Earn application error: {e}")
            sys.exit(1)
        finally:
            self.cleanup()

    def cleanup(self):
        """Cleanup when shutting down."""
        logger.info("Cleaning up Watch & Earn")
        stop_status_broadcast()
        if self.controller:
            self.loop.call_soon(self.controller.shutdown)
            self.loop.call_soon(self.loop.stop)
            if self.loop_thread:
                self.loop_thread.join(timeout=5)
        if self.executor:
            self.executor.shutdown(wait=False)

def main():
    """Main entry point."""
    WatchEarnApp().run()

if __name__ == "__main__":
    main()
