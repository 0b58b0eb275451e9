"""CalmDay scheduling engine: gaps, intensity and micro-activity placement."""
