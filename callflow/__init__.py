"""Finite-state controller for outbound appointment confirmation calls.

The voice agent consults this package on every turn: it selects an action,
the transition engine advances the conversation state, and the template
resolver renders the next instruction.
"""
