"""
WebSocket session layer: connection registry and per-socket protocol handling.

Sockets are any object exposing ``send(text)`` and ``close(reason, message)``
(flask-sock hands us simple_websocket.Server instances).
"""
import json
import logging
import threading
import time

import jwt

logger = logging.getLogger(__name__)

POLICY_VIOLATION = 1008

# Heartbeats inside this many seconds of token expiry get a token_warning
TOKEN_WARNING_SECONDS = 300


def _encode(message):
    return json.dumps(message, default=str)


class ConnectionRegistry:
    """Live sockets grouped by user id, plus the admin channel."""

    def __init__(self):
        self._lock = threading.Lock()
        self._clients = {}  # user_id -> set of sockets
        self._admins = set()
        self._anonymous = set()

    # Registration

    def add_anonymous(self, ws):
        with self._lock:
            self._anonymous.add(ws)

    def register(self, ws, user_id, is_admin=False):
        with self._lock:
            self._anonymous.discard(ws)
            self._clients.setdefault(user_id, set()).add(ws)
            if is_admin:
                self._admins.add(ws)
        logger.info(f"{'Admin' if is_admin else 'User'} connected: {user_id}")

    def disconnect(self, ws, user_id=None):
        """Forget a socket. Safe to call more than once."""
        with self._lock:
            self._anonymous.discard(ws)
            self._admins.discard(ws)
            user_ids = [user_id] if user_id is not None else list(self._clients)
            for uid in user_ids:
                sockets = self._clients.get(uid)
                if not sockets:
                    continue
                sockets.discard(ws)
                if not sockets:
                    del self._clients[uid]

    # Sending

    def _send(self, ws, message):
        try:
            ws.send(_encode(message))
            return True
        except Exception as e:
            logger.warning(f"Dropping dead websocket: {str(e)}")
            self.disconnect(ws)
            return False

    def _send_many(self, sockets, message):
        delivered = 0
        for ws in sockets:
            if self._send(ws, message):
                delivered += 1
        return delivered

    def broadcast(self, message):
        with self._lock:
            sockets = set(self._anonymous)
            for user_sockets in self._clients.values():
                sockets.update(user_sockets)
        return self._send_many(sockets, message)

    def send_to_user(self, user_id, message):
        with self._lock:
            sockets = list(self._clients.get(user_id, ()))
        return self._send_many(sockets, message)

    def notify_admins(self, message):
        with self._lock:
            sockets = list(self._admins)
        return self._send_many(sockets, message)

    def notify_new_premium(self, subscription_data):
        return self.notify_admins({
            'type': 'premium_subscription',
            'action': 'new',
            'data': subscription_data,
        })

    def notify_premium_status_change(self, subscription_id, new_status, user_id=None):
        message = {
            'type': 'premium_subscription',
            'action': 'status_change',
            'subscriptionId': subscription_id,
            'newStatus': new_status,
        }
        self.notify_admins(message)
        if user_id is not None:
            self.send_to_user(user_id, message)

    # Introspection

    def is_user_online(self, user_id):
        with self._lock:
            return bool(self._clients.get(user_id))

    def online_users(self):
        with self._lock:
            return [uid for uid, sockets in self._clients.items() if sockets]

    def connection_count(self):
        with self._lock:
            return sum(len(sockets) for sockets in self._clients.values())


class WebSocketSession:
    """
    Protocol state for one socket.

    The first meaningful frame must be ``{"type": "authenticate", "token": ...}``.
    ``handle`` returns False once the connection should be closed.
    """

    def __init__(self, ws, registry, decode_token):
        self.ws = ws
        self.registry = registry
        self.decode_token = decode_token
        self.user_id = None
        self.is_admin = False
        self.authenticated = False
        self.expires_at = None
        self.expiry_warned = False

    def send(self, message):
        self.ws.send(_encode(message))

    def open(self):
        self.registry.add_anonymous(self.ws)

    def close(self):
        self.registry.disconnect(self.ws, self.user_id)
        if self.user_id is not None:
            logger.info(f"Client disconnected: {self.user_id}")

    def _reject(self, message, code, details=None):
        body = {'type': 'authentication_error', 'message': message, 'code': code}
        if details:
            body['details'] = details
        self.send(body)
        self.ws.close(POLICY_VIOLATION, message)
        return False

    def _forget_identity(self):
        self.registry.disconnect(self.ws, self.user_id)
        self.registry.add_anonymous(self.ws)
        logger.info(f"Client re-authenticating, dropped identity {self.user_id}")
        self.user_id = None
        self.is_admin = False
        self.authenticated = False
        self.expires_at = None
        self.expiry_warned = False

    def authenticate(self, token):
        if self.authenticated:
            self._forget_identity()
        if not token:
            return self._reject('Token is required', 'MISSING_TOKEN')
        try:
            payload = self.decode_token(token)
        except jwt.ExpiredSignatureError as e:
            return self._reject('Token has expired. Please login again.', 'TOKEN_EXPIRED', str(e))
        except jwt.ImmatureSignatureError as e:
            return self._reject('Token not active yet', 'TOKEN_NOT_ACTIVE', str(e))
        except jwt.InvalidTokenError as e:
            return self._reject('Invalid token format', 'INVALID_TOKEN', str(e))

        user_id = payload.get('userId')
        if user_id is None:
            return self._reject('Invalid token format', 'INVALID_TOKEN', 'missing userId')

        self.user_id = user_id
        self.is_admin = payload.get('isAdmin') is True or str(payload.get('role', '')).lower() == 'admin'
        self.authenticated = True
        self.expires_at = payload.get('exp')
        self.registry.register(self.ws, user_id, self.is_admin)
        self.send({
            'type': 'connection_status',
            'status': 'connected',
            'userId': user_id,
            'isAdmin': self.is_admin,
        })
        return True

    def handle(self, raw):
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError('frame must be a JSON object')
        except (TypeError, ValueError):
            self.send({
                'type': 'error',
                'message': 'Invalid message format',
                'code': 'INVALID_MESSAGE_FORMAT',
            })
            return True

        message_type = data.get('type')
        if message_type == 'authenticate':
            return self.authenticate(data.get('token'))

        if not self.authenticated:
            self.send({
                'type': 'error',
                'message': 'Authentication required',
                'code': 'NOT_AUTHENTICATED',
            })
            return True

        if message_type == 'ping':
            self.send({'type': 'pong'})
        elif message_type == 'heartbeat':
            now = time.time()
            self.send({'type': 'heartbeat_response', 'timestamp': int(now * 1000)})
            self.warn_if_expiring(now)
        else:
            logger.debug(f"Unknown message type: {message_type}")
        return True

    def warn_if_expiring(self, now=None):
        """Send one token_warning once the token is close to expiry."""
        if self.expiry_warned or self.expires_at is None:
            return False
        now = time.time() if now is None else now
        if self.expires_at - now > TOKEN_WARNING_SECONDS:
            return False
        self.expiry_warned = True
        self.send({
            'type': 'token_warning',
            'message': 'Your session will expire soon. Please refresh your login.',
            'code': 'TOKEN_EXPIRING_SOON',
        })
        return True


def init_app(app, registry=None):
    registry = registry or ConnectionRegistry()
    app.extensions['websocket'] = registry
    return registry


def get_registry(app=None):
    """Registry of the given app, or of current_app."""
    if app is None:
        from flask import current_app
        app = current_app
    return app.extensions.get('websocket')
