"""
Delivery Pipeline

Moves stored messages to the downstream consumer:
- Outbound transport making single classified attempts
- Exponential backoff with jitter inside a delivery cycle
- Stateless forwarder persisting the terminal outcome
- Background retry sweeper for pending and failed messages
"""

from relay.delivery.backoff import BackoffPolicy
from relay.delivery.transport import OutboundTransport, HttpTransport, classify_response
from relay.delivery.forwarder import Forwarder
from relay.delivery.sweeper import RetrySweeper

__all__ = [
    "BackoffPolicy",
    "OutboundTransport",
    "HttpTransport",
    "classify_response",
    "Forwarder",
    "RetrySweeper",
]
