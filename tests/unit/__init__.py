"""
Unit tests for the clinic resilience layer.

Test individual components in isolation:
- Backoff policy and error classifier
- Retry executor (attempt counting, delays, deadlines, cancellation)
- Circuit breaker state machine, concurrency and registry
- Optimistic lock guard and versioned stores
- API error mapping and health endpoints
"""
