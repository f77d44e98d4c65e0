"""
config/ — Settings loading and the live configuration snapshot
"""
