"""Engine-specific collaborators. Importing this package does not require arcade."""
