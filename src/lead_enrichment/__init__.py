"""
Lead enrichment waterfall engine
Fills missing contact fields from external data providers in a configured
fallback order, under health, cost and confidence constraints
"""

__version__ = "1.0.0"
