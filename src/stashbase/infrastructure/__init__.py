"""Infrastructure layer: storage adapters and blob stores."""
