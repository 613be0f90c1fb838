from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rentflow import __version__
from rentflow.models import RentalStatus
from rentflow.registry import RentalRegistry
from .deps import get_registry
from .rentals import router as rentals_router

app = FastAPI(
    title="Rentflow API",
    version=__version__,
    description="HTTP layer over the rental life-cycle engine.",
)

# --- CORS ----------------------------------------------------------
# Dev front-end origins; tighten for production.
origins = [
    "http://localhost:5173",    # Vite dev server default port
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)

app.include_router(rentals_router)


# ---------- health-check ----------
@app.get("/")
def root():
    return {"status": "ok", "msg": "Rentflow API is alive"}


# ---------- GET /status ----------
@app.get("/status")
def status_snapshot(registry: RentalRegistry = Depends(get_registry)):
    counts: dict[str, int] = {}
    for r in registry:
        counts[r.rental_status.value] = counts.get(r.rental_status.value, 0) + 1
    # ensure zeroes appear
    for s in RentalStatus:
        counts.setdefault(s.value, 0)
    return counts
