"""Conversational drone dispatch assistant.

A tool-calling loop over a drone logistics backend plus the confirmation
flow that turns a planned route into delivery records.
"""

__version__ = "0.1.0"
