"""HTTP routes for publish submissions."""
