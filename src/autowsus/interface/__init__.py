"""Interface layer: command line and console rendering."""
