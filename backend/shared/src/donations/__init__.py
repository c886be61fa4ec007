"""Donation ingestion and team totals for the team fundraiser backend."""
