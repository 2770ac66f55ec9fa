# Routes package init
"""
PetMatch Backend - API Routes Package
=====================================

Route Inventory:
    - adoptions.py:   /api/adoptions...               (application lifecycle)
    - activities.py:  /api/activities/{id}/register   (registration)
    - health.py:      GET /health                     (service health check)

Routes are thin: they resolve the actor, validate the body with a schema,
call one service method and return its result. Business rules live in
services.
"""
