"""
HTTP service exposing the calculators.
"""
