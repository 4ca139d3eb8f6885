"""
bunbox-deploy

Deploy Bun apps to your own server over SSH with immutable releases,
atomic activation and rollback.
"""

__version__ = "1.0.0"
