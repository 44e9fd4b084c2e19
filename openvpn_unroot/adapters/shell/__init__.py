"""Real providers backed by system tools and the local filesystem."""
