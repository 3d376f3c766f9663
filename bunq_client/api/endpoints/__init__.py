"""
bunq API endpoint bindings.

Each function issues one call through the endpoint's rate limiter and
returns the flattened response.
"""
