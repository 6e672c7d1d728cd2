"""Local file storage for camera captures."""
