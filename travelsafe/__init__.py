"""
TravelSafe Hub backend.

A small FastAPI service that stores combined weather and COVID-19 reports
per location and serves them back, newest first, to API-key holders.
"""
