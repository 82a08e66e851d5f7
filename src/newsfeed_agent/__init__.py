"""News feed agent: resilient fetching, TTL caching and paginated feeds."""
