"""Command-line runtime for the segmentation engine."""
