"""CardSwap: nearby card trade matching and trade lifecycle service."""
