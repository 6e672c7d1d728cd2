"""Background pollers and pipelines."""
