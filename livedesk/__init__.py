"""
LiveDesk: live support sessions for the complaint desk.

Server side (FastAPI API, stores, change feed) and participant side
(transport, peer connection manager, session orchestrator).
"""

__version__ = "0.1.0"
