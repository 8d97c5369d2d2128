"""
Tournament bracket engine: generation, normalization, progression and standings.
"""
