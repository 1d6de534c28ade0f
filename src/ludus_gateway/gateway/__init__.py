"""Gateway between the Ludus app and the upstream LLM API."""
