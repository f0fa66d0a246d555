"""HTTP collaborators for the upstream investment platform API."""
