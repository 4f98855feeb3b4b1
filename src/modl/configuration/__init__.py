"""Configuration: YAML application config, AI endpoint settings and the settings provider."""
