"""Pure labeling logic: coordinate normalization, the drawing gesture and container sizing."""
