"""
observability/ — Structured logging
"""
