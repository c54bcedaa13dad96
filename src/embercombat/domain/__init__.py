"""Combat domain models, formulas and rules."""
