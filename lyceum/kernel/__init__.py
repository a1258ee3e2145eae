"""
Kernel layer: data models, identity and the audit log.

Services above this layer never bypass the event store when mutating state.
"""
