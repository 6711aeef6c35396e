"""
Account notifications.

Receivers connect with e.g. ``user_registered.connect(handler)``; the sender
is the AccountService instance and the user is passed as ``user``.
"""
from blinker import Namespace

_signals = Namespace()

user_registered = _signals.signal("user-registered")
user_status_changed = _signals.signal("user-status-changed")
