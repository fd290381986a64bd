"""HTTP concerns shared by every router: middleware and exception handlers."""
