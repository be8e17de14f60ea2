"""
Shared helpers: errors, auth tokens, mail, notifications, websocket registry
"""
