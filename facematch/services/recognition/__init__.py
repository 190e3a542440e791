"""Local face recognition backends."""
