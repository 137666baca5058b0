"""ctproxy: local control plane for an Xray-compatible proxy engine.

Stores connection profiles, keeps exactly one of them active, materializes
the active profile into the engine's runtime config and supervises the
engine process behind a small HTTP control API.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
