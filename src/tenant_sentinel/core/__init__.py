"""Core domain: models, ports, encoding and aggregation. No I/O."""
