"""
HTTP request/response schemas. Fields are camelCase on the wire.
"""
