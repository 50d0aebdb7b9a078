"""Bot handlers package."""
