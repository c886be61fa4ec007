"""FastAPI application for the team fundraiser donation backend."""
