"""InfiNet AI generation gateway."""
