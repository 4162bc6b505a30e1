"""
Integration tests for the clinic resilience layer.

Exercise the composed breaker + retry call path and versioned writes routed
through it, with in-process fakes for the dependencies.
"""
