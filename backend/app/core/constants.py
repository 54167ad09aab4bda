# backend/app/core/constants.py
"""
Application-wide constants for the practice space API.
"""

BRAND_NAME = "Practice Space"

API_TITLE = f"{BRAND_NAME} API"
API_DESCRIPTION = (
    f"Backend API for the {BRAND_NAME} - reservations, member credits and recurring bookings"
)
API_VERSION = "1.0.0"
API_V1_PREFIX = "/api/v1"

ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
