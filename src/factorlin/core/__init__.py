"""Keys, errors, Lie-group maps, value store and variable ordering."""
