"""bunbox-deploy CLI commands."""
