"""Admin HTTP surface for the population pipeline."""
