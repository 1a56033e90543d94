"""
mirror-relay: WebSocket signaling relay pairing a screen source with a viewer.
"""
__version__ = "1.0.0"
