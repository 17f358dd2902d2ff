"""Binary content access for reference images."""
