# ipd_ledger/api/router.py
from fastapi import APIRouter
from ipd_ledger.api import (
    routes_episodes,
    routes_ledger,
    routes_discharge,
)

api_router = APIRouter()

api_router.include_router(routes_episodes.router)
api_router.include_router(routes_ledger.router)
api_router.include_router(routes_discharge.router)
