"""
Infrastructure layer - gateway and object storage clients.
"""
