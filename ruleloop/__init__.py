"""
ruleloop - Automation Execution Loop

Periodically matches active automation rules against new domain events,
runs a schema-constrained LLM action per event and records every attempt.
"""

__version__ = "0.1.0"
