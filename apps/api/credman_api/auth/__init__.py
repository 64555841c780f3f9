"""Identity resolution and organization membership gate."""
