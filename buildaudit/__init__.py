"""buildaudit command line interface."""
