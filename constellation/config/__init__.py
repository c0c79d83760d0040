"""Settings and routing-policy configuration."""
