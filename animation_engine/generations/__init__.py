"""Generation status and result collaborators."""
