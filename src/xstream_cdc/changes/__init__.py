"""Change model, conversion and the change builder."""
