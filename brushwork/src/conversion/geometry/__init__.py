"""Brush clipping and displacement meshing."""
