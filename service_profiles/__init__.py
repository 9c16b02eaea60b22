"""Profile cache service package."""
