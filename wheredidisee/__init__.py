"""Where Did I See This? - searchable personal page history."""
