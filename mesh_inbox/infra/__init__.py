"""Infrastructure: telemetry and health probes."""
