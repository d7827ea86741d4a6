"""State/store layer.

This package is the single source of truth for the connection state of the
bridged session, and for how that state is represented on the wire.
"""
