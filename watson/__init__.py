"""Watson: log document store with line-level pattern analysis."""
