"""Observability helpers for the relay.

structlog JSON logging, request-id context for access logs, and the
performance counter that aggregates relay latency once per interval.
"""
