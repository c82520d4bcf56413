"""
Al-Hadi Media Test Suite

Test Categories:
- unit/: Fast, isolated unit tests
- integration/: Tests against the FastAPI app with fake storage
"""
