"""Computer vision package: frame change detection and gecko classification."""
