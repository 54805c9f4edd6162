"""Application layer for the match-tracker service.

This layer contains the polling engines and the match store. It
orchestrates domain operations over the adapters.
"""
