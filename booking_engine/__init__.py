"""Two-party booking negotiation and publication service."""
