"""Client module - Storage API client, registry, UI and watch engine."""
