"""Full-screen session: wires the terminal, the view and the connection together.

The main thread reads keys. A render thread repaints whenever the view
reports a change and at least every ``render_interval`` seconds. A receive
thread drains the websocket while a session is open.
"""

from __future__ import annotations

import signal
import threading
from typing import TYPE_CHECKING

from axon import logging as axon_log
from axon.connection import ConnectionManager
from axon.logging import get_structlog
from axon.tui import keys
from axon.tui.terminal import Terminal
from axon.tui.view import View

if TYPE_CHECKING:
    from axon.config import Config

log = get_structlog()

# Seconds to wait for worker threads after the session ends
JOIN_TIMEOUT = 2.0


def _render_loop(view: View, terminal: Terminal, interval: float) -> None:
    while view.running:
        view.wait_for_change(interval)
        if not view.running:
            break
        width, height = terminal.size()
        try:
            frame = view.render(width, height)
        except Exception as e:
            log.error("render_failed", error=str(e), width=width, height=height)
            continue
        try:
            terminal.write(frame)
        except OSError as e:
            log.error("write_failed", error=str(e))
            break


def _input_loop(view: View, terminal: Terminal) -> None:
    for key in terminal.keys(lambda: view.running):
        width, height = terminal.size()
        if view.input(key, width, height).is_close:
            log.info("quit_requested")
            return


def run_tui(config: Config) -> bool:
    """Run the interactive session until the user quits.

    Returns whether a session was still open when the UI closed.

    Raises:
        OSError: If stdin or stdout is not a terminal.
    """
    connection = ConnectionManager(
        connect_timeout=config.connection.connect_timeout,
        poll_interval=config.tui.poll_interval,
    )
    view = View(config, connection)
    terminal = Terminal()

    receiver = threading.Thread(
        target=connection.run, args=(view,), name="axon-receive", daemon=True
    )
    renderer = threading.Thread(
        target=_render_loop,
        args=(view, terminal, config.tui.render_interval),
        name="axon-render",
        daemon=True,
    )

    if config.connection.autoconnect:
        axon_log.autoconnecting(config.connection.server)

    previous = signal.signal(signal.SIGWINCH, lambda signum, frame: view.wake())
    log.info("session_started", server=config.connection.server or None)
    logged_in = False
    try:
        with terminal:
            receiver.start()
            renderer.start()
            if config.connection.autoconnect:
                view.input(keys.ENTER, *terminal.size())
            try:
                _input_loop(view, terminal)
            finally:
                logged_in = view.logged_in
                view.shutdown()
                renderer.join(JOIN_TIMEOUT)
                receiver.join(JOIN_TIMEOUT)
    finally:
        signal.signal(signal.SIGWINCH, previous)
        log.info("session_finished", logged_in=logged_in)
    return logged_in
