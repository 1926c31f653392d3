"""
Domain layer - listing records, enumerated domains and normalized errors.

This layer contains the fundamental business objects and rules,
independent of the gateway and storage transports.
"""
