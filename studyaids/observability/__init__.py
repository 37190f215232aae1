"""
Observability Package — Tracing

Provides:
  TracingConfig   — LangSmith initialisation
  traced          — decorator for instrumenting async functions

Usage::

    # At app startup (in main.py lifespan):
    from studyaids.observability.tracing import TracingConfig
    TracingConfig.init(settings)
"""

from studyaids.observability.tracing import TracingConfig, traced

__all__ = ["TracingConfig", "traced"]
