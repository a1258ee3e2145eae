"""
Orchestration: the progress state machine.
"""
