"""Domain knowledge: personas, aliases and topic routing."""
