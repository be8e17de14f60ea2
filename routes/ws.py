"""
WebSocket endpoint for live subscription notifications
"""
from flask import current_app
from flask_sock import Sock
from simple_websocket import ConnectionClosed

from utils.auth_utils import decode_access_token
from utils.websocket import WebSocketSession, get_registry

sock = Sock()


@sock.route('/ws')
def websocket(ws):
    """Authenticate with the first frame, then serve ping/heartbeat"""
    session = WebSocketSession(ws, get_registry(), decode_access_token)
    session.open()
    try:
        while True:
            raw = ws.receive()
            if raw is None:
                continue
            if not session.handle(raw):
                break
    except ConnectionClosed:
        pass
    except Exception as e:
        current_app.logger.error(f"WebSocket error: {str(e)}", exc_info=True)
    finally:
        session.close()
