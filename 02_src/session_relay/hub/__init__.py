"""BroadcastHub module."""

from .hub import BroadcastHub, IBroadcastHub, ISubscriberTransport, Subscriber

__all__ = ["BroadcastHub", "IBroadcastHub", "ISubscriberTransport", "Subscriber"]
