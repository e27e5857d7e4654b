"""Process execution."""
