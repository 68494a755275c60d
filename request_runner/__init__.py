"""
Request Runner - local REST-API client engine.

Resolves variables and authentication for stored request definitions,
runs pre-request and post-response scripts, executes HTTP calls and
replays whole collections under a run configuration.
"""

__version__ = "1.0.0"
