"""Framework-free rendering of Cloud Logging structured entries."""
