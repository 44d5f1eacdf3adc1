"""Gateway services: transport, signing, normalization and provider adapters."""
