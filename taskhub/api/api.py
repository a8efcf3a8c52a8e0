"""
API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from taskhub.api.endpoints import auth, health, tasks, users

api_router = APIRouter()

# Register / login / OTP verification / logout
api_router.include_router(auth.router)

# Profile changes and user administration
api_router.include_router(users.router)

# Tasks and activity log
api_router.include_router(tasks.router)

# Liveness
api_router.include_router(health.router)
