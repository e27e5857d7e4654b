"""Virtual environments and packages."""
