"""HTTP surface: FastAPI app factory, callback routes and live feed."""
