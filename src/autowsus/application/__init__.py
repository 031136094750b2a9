"""Application layer: maintenance services and the pipeline controller."""
