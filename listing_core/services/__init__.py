"""
Service layer - transformation, querying and orchestration of listing operations.
"""
