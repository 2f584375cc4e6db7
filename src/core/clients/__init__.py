"""
Outbound Clients

Clients for the external collaborators the command engine consumes.
"""

from core.clients.intent_parser_client import IntentParser, IntentParserClient

__all__ = [
    "IntentParser",
    "IntentParserClient",
]
