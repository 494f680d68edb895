"""
Test suite for galleryingest.

This module contains all test cases for the application:
- Unit tests for services, models and the client queue
- API tests through FastAPI's TestClient
"""
