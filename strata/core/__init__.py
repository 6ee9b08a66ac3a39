"""Core building blocks: layer taxonomy, confidence math, derivation, storage, collaborators."""
