"""
Model adapter engine.

Connects a chat front end to arbitrary third-party model endpoints
described by declarative adapter configurations.
"""

__version__ = "0.1.0"
