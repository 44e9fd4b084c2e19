"""Configuration — host layout, the old OpenVPN config, and rewrite rules."""
