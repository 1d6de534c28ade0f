"""Client side of the sentence-generation contract."""
