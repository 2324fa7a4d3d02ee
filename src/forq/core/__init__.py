"""Tool orchestration core: codec, permission gate, pipeline, shell session."""
