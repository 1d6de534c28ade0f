"""
Ludus gateway package.

Provides:
- An HTTP gateway in front of the Anthropic Messages API (validation,
  rate limiting, upstream forwarding, error translation)
- A Python client for the sentence-generation endpoint
"""
