"""Table metadata types and providers."""
