"""Source adapters: environmental sensor, camera, weather API and host metrics."""
