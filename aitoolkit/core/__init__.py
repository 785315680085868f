"""
Core modules: configuration, logging, metrics, tracing, errors and the
provider circuit breaker.
"""
